"""Workday platform handler -- automation-id and label maps, widget detection."""

from __future__ import annotations

from typing import Any

from formhand.engine.types import FieldType, PageModel

# Workday ``data-automation-id`` values -> canonical user data keys
_AUTOMATION_ID_MAP: dict[str, str] = {
    # Legal name
    "legalNameSection_firstName": "first_name",
    "legalNameSection_lastName": "last_name",
    "legalNameSection_middleName": "middle_name",
    "legalNameSection_preferredFirstName": "preferred_first_name",
    # Address
    "addressSection_addressLine1": "street",
    "addressSection_addressLine2": "street2",
    "addressSection_city": "city",
    "addressSection_countryRegion": "country",
    "addressSection_postalCode": "zip",
    "addressSection_stateProvince": "state",
    # Phone
    "phone_number": "phone",
    "phone-device-type": "phone_device_type",
    "countryPhoneCode": "phone_country_code",
    # Email
    "email": "email",
    "emailAddress": "email",
    # Links
    "linkedInQuestion": "linkedin_url",
    "websiteQuestion": "website_url",
    # Self-identification
    "genderDropdown": "gender",
    "ethnicityDropdown": "race_ethnicity",
    "veteranStatusDropdown": "veteran_status",
    "disabilityStatusDropdown": "disability_status",
    # Education
    "education-school": "school",
    "education-degree": "degree",
    "education-fieldOfStudy": "field_of_study",
    "education-gpa": "gpa",
    "education-startDate": "education_start_date",
    "education-endDate": "education_end_date",
    # Work experience
    "workExperience-jobTitle": "job_title",
    "workExperience-company": "company",
    "workExperience-startDate": "work_start_date",
    "workExperience-endDate": "work_end_date",
    "workExperience-description": "work_description",
    # Resume
    "file-upload-input-ref": "resume_path",
}

# Label text as displayed -> canonical user data keys
_LABEL_MAP: dict[str, str] = {
    "First Name": "first_name",
    "Legal First Name": "first_name",
    "Preferred First Name": "preferred_first_name",
    "Last Name": "last_name",
    "Legal Last Name": "last_name",
    "Middle Name": "middle_name",
    "Email Address": "email",
    "Email": "email",
    "Phone Number": "phone",
    "Phone": "phone",
    "Mobile Phone Number": "phone",
    "Phone Device Type": "phone_device_type",
    "Phone Type": "phone_device_type",
    "Country Phone Code": "phone_country_code",
    "Country": "country",
    "Country/Territory": "country",
    "Address Line 1": "street",
    "Street": "street",
    "Street Address": "street",
    "Address Line 2": "street2",
    "City": "city",
    "State": "state",
    "State/Province": "state",
    "Province": "state",
    "Postal Code": "zip",
    "ZIP Code": "zip",
    "ZIP": "zip",
    "LinkedIn": "linkedin_url",
    "LinkedIn URL": "linkedin_url",
    "LinkedIn Profile": "linkedin_url",
    "Website": "website_url",
    "Website URL": "website_url",
    "Personal Website": "website_url",
    "Gender": "gender",
    "Race/Ethnicity": "race_ethnicity",
    "Race": "race_ethnicity",
    "Ethnicity": "race_ethnicity",
    "Veteran Status": "veteran_status",
    "Are you a protected veteran": "veteran_status",
    "Disability Status": "disability_status",
    "Disability": "disability_status",
    "Please indicate if you have a disability": "disability_status",
    "School": "school",
    "School or University": "school",
    "Degree": "degree",
    "Field of Study": "field_of_study",
    "GPA": "gpa",
    "Job Title": "job_title",
    "Company": "company",
    "Location": "work_location",
    "Description": "work_description",
    "Name": "full_name",
    "Full Name": "full_name",
    "Signature": "full_name",
    "Please enter your name": "full_name",
    "Your name": "full_name",
    "Enter your name": "full_name",
    "Desired Salary": "desired_salary",
    "What is your desired salary?": "desired_salary",
}

_TYPEAHEAD_ID_HINTS = ("fieldOfStudy", "skills", "school", "degree")
_DATE_ID_HINTS = ("dateSectionMonth", "dateSectionDay", "dateSectionYear")


class WorkdayPlatformHandler:
    """Workday-specific field detection, label maps and automation-id maps."""

    platform_id = "workday"
    next_button_selector = (
        'button[data-automation-id="bottom-navigation-next-button"], '
        'button:has-text("Save and Continue")'
    )

    def get_automation_id_map(self) -> dict[str, str]:
        return dict(_AUTOMATION_ID_MAP)

    def get_label_map(self) -> dict[str, str]:
        return dict(_LABEL_MAP)

    def is_review_page(self, page_model: PageModel) -> bool:
        """Detect the final review/submit page.

        A "Submit Application" button with no "Save and Continue" button, or a
        page label mentioning "review".
        """
        has_submit = any(
            "submit application" in btn.text.lower()
            or (btn.automation_id == "bottom-navigation-next-button" and "submit" in btn.text.lower())
            for btn in page_model.buttons
        )
        has_save_and_continue = any(
            "save and continue" in btn.text.lower()
            or (btn.automation_id == "bottom-navigation-next-button" and "submit" not in btn.text.lower())
            for btn in page_model.buttons
        )
        if has_submit and not has_save_and_continue:
            return True
        return bool(page_model.page_label and "review" in page_model.page_label.lower())

    def detect_field_type(self, element: dict[str, Any]) -> FieldType | None:
        """Override generic type detection for Workday widget patterns.

        ``element`` is the scanner's raw element record (tagName, textContent,
        automationId, ariaRole, ariaHasPopup).  Returns None to fall through.
        """
        tag = str(element.get("tagName", "")).lower()
        text = str(element.get("textContent") or "")
        automation_id = str(element.get("automationId") or "")
        aria_role = element.get("ariaRole")
        aria_has_popup = element.get("ariaHasPopup")

        if tag == "button" and (text.strip() == "Select One" or aria_has_popup == "listbox"):
            return FieldType.CUSTOM_DROPDOWN
        if automation_id and any(hint in automation_id for hint in _DATE_ID_HINTS):
            return FieldType.DATE
        if aria_role == "combobox" and aria_has_popup == "listbox":
            return FieldType.TYPEAHEAD
        if automation_id and any(hint in automation_id for hint in _TYPEAHEAD_ID_HINTS):
            return FieldType.TYPEAHEAD
        if "Field of Study" in text or "Skills" in text:
            return FieldType.TYPEAHEAD
        return None
