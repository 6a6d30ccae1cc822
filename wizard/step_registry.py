"""Registry of wizard flows, their steps and canonical field order."""

from __future__ import annotations

from enum import StrEnum
from typing import Final

import config
from core.schema import FieldKind, FieldSpec, ValidationRule, WizardSchema, WizardStep
from core.validation import (
    collection_rule,
    email_rule,
    password_rule,
    phone_rule,
    pincode_rule,
    required_rule,
    website_rule,
    year_rule,
)


class WizardFlow(StrEnum):
    """Wizard instantiations sharing the draft/session machinery."""

    STUDENT_REGISTER = "student-register"
    AGENT_CREATE = "agent-create"
    AGENT_EDIT = "agent-edit"


INDIAN_STATES: Final[tuple[str, ...]] = (
    "Andhra Pradesh",
    "Arunachal Pradesh",
    "Assam",
    "Bihar",
    "Chhattisgarh",
    "Delhi",
    "Goa",
    "Gujarat",
    "Haryana",
    "Himachal Pradesh",
    "Jharkhand",
    "Karnataka",
    "Kerala",
    "Madhya Pradesh",
    "Maharashtra",
    "Manipur",
    "Meghalaya",
    "Mizoram",
    "Nagaland",
    "Odisha",
    "Punjab",
    "Rajasthan",
    "Sikkim",
    "Tamil Nadu",
    "Telangana",
    "Tripura",
    "Uttar Pradesh",
    "Uttarakhand",
    "West Bengal",
)

SPECIALIZATION_OPTIONS: Final[tuple[str, ...]] = (
    "MBBS Admissions",
    "Medical Counseling",
    "Visa Assistance",
    "International Admissions",
    "Student Support",
    "Career Guidance",
    "NEET Coaching",
    "Abroad Studies",
    "Scholarship Guidance",
    "University Partnerships",
    "Student Mentoring",
    "Documentation",
    "Pre-departure Support",
)

SERVICE_OPTIONS: Final[tuple[str, ...]] = (
    "Admission Counseling",
    "Visa Processing",
    "Accommodation Assistance",
    "Travel Arrangements",
    "Document Verification",
    "Scholarship Guidance",
    "Career Counseling",
    "Test Preparation",
    "University Selection",
    "Application Processing",
    "Financial Planning",
    "Post-arrival Support",
)

COUNTRIES: Final[tuple[str, ...]] = ("INDIA", "UNITED STATES", "UNITED KINGDOM", "CANADA", "AUSTRALIA")
PHONE_COUNTRY_CODES: Final[tuple[str, ...]] = ("1", "44", "61", "91")


def _text(name: str, alias: str, label: str, *, required: bool = True, **kwargs: object) -> FieldSpec:
    rule = required_rule() if required else ValidationRule()
    return FieldSpec(name=name, alias=alias, label=label, rule=rule, **kwargs)  # type: ignore[arg-type]


def _choice(name: str, alias: str, label: str, options: tuple[str, ...], *, required: bool = True) -> FieldSpec:
    return FieldSpec(
        name=name,
        alias=alias,
        label=label,
        kind=FieldKind.CHOICE,
        options=options,
        rule=required_rule() if required else ValidationRule(),
    )


def _agent_steps(*, editing: bool) -> tuple[WizardStep, ...]:
    personal = WizardStep(
        key="personal",
        title="Personal",
        description="Contact person and professional background.",
        fields=(
            _text("first_name", "firstName", "First name"),
            _text("last_name", "lastName", "Last name"),
            FieldSpec("email", "Email", FieldKind.EMAIL, email_rule()),
            FieldSpec("phone", "Phone number", FieldKind.PHONE, phone_rule("Phone number")),
            FieldSpec(
                "alternate_phone",
                "Alternate phone",
                FieldKind.PHONE,
                phone_rule("Alternate phone", required=False),
                alias="alternatePhone",
            ),
            _text("qualification", "qualification", "Qualification"),
            _text("designation", "designation", "Designation"),
            _choice(
                "experience",
                "experience",
                "Experience level",
                ("1-2 years", "3-5 years", "6-10 years", "11-15 years", "15+ years"),
            ),
        ),
    )
    company = WizardStep(
        key="company",
        title="Company",
        description="Registered business details and address.",
        fields=(
            _text("company_name", "companyName", "Company name"),
            _choice(
                "company_type",
                "companyType",
                "Company type",
                ("Private Limited", "Public Limited", "Partnership", "Proprietorship", "LLP", "NGO"),
            ),
            # Admins may leave these blank when editing legacy records.
            _text("registration_number", "registrationNumber", "Registration number", required=not editing),
            FieldSpec("established_year", "Established year", FieldKind.YEAR, year_rule(), alias="establishedYear"),
            FieldSpec("website", "Website", FieldKind.TEXT, website_rule(required=not editing)),
            _text("address", "address", "Address", kind=FieldKind.TEXTAREA),
            _text("city", "city", "City"),
            _choice("state", "state", "State", INDIAN_STATES),
            FieldSpec("pincode", "PIN code", FieldKind.TEXT, pincode_rule()),
            _text("country", "country", "Country", required=False, default=config.DEFAULT_COUNTRY),
        ),
    )
    expertise = WizardStep(
        key="expertise",
        title="Expertise",
        description="Specializations, services and current scale.",
        fields=(
            FieldSpec(
                "specialization",
                "Specialization",
                FieldKind.MULTI_CHOICE,
                collection_rule(),
                options=SPECIALIZATION_OPTIONS,
            ),
            FieldSpec(
                "services_offered",
                "Service",
                FieldKind.MULTI_CHOICE,
                collection_rule(),
                alias="servicesOffered",
                options=SERVICE_OPTIONS,
            ),
            _choice(
                "current_students",
                "currentStudents",
                "Student base range",
                ("1-50", "51-100", "101-250", "251-500", "500+"),
            ),
            _choice(
                "annual_revenue",
                "annualRevenue",
                "Annual revenue",
                ("Under 10 Lakhs", "10-25 Lakhs", "25-50 Lakhs", "50 Lakhs - 1 Crore", "1-5 Crores", "5+ Crores"),
                required=False,
            ),
            _choice("team_size", "teamSize", "Team size", ("1-5", "6-10", "11-25", "26-50", "50+")),
        ),
    )
    partnership_fields: list[FieldSpec] = [
        _choice(
            "partnership_type",
            "partnershipType",
            "Partnership type",
            ("Authorized Representative", "Regional Partner", "Referral Partner", "Franchise Partner"),
        ),
        _choice(
            "expected_students",
            "expectedStudents",
            "Target students range",
            ("10-25", "26-50", "51-100", "100+"),
        ),
        _choice(
            "marketing_budget",
            "marketingBudget",
            "Marketing budget",
            ("Under 1 Lakh", "1-5 Lakhs", "5-10 Lakhs", "10+ Lakhs"),
            required=False,
        ),
        _text("references", "references", "References", required=False, kind=FieldKind.TEXTAREA),
        _text("why_partner", "whyPartner", "Partnership reasoning", kind=FieldKind.TEXTAREA),
        _text("additional_info", "additionalInfo", "Additional information", required=False, kind=FieldKind.TEXTAREA),
        FieldSpec("terms_accepted", "Terms accepted", FieldKind.HIDDEN, alias="termsAccepted", default=True),
        FieldSpec("data_consent", "Data consent", FieldKind.HIDDEN, alias="dataConsent", default=True),
    ]
    if editing:
        partnership_fields.append(
            FieldSpec(
                "new_password",
                "New password",
                FieldKind.PASSWORD,
                password_rule(),
                alias="newPassword",
                help="Leave blank to keep the current password.",
            )
        )
    partnership = WizardStep(
        key="partnership",
        title="Partnership",
        description="Partnership model and expectations.",
        fields=tuple(partnership_fields),
        terminal=True,
    )
    return (personal, company, expertise, partnership)


def _student_steps() -> tuple[WizardStep, ...]:
    personal = WizardStep(
        key="personal",
        title="Personal Info",
        fields=(
            _text("first_name", "firstName", "First name"),
            _text("last_name", "lastName", "Last name"),
            FieldSpec("email", "Email address", FieldKind.EMAIL, email_rule()),
            _choice("country_code", "c_code", "Country code", PHONE_COUNTRY_CODES, required=False),
            FieldSpec("mobile", "Mobile number", FieldKind.PHONE, phone_rule("Mobile number")),
            _text("father", "father", "Father's name", required=False),
            _text("mother", "mother", "Mother's name", required=False),
            _text("dob", "dob", "Date of birth", required=False, kind=FieldKind.DATE),
            _text("first_language", "first_language", "First language", required=False),
            _choice("nationality", "nationality", "Nationality", COUNTRIES, required=False),
            _text("passport_number", "passport_number", "Passport number", required=False),
            _text("passport_expiry", "passport_expiry", "Passport expiry", required=False, kind=FieldKind.DATE),
            _choice("marital_status", "marital_status", "Marital status", ("Single", "Married", "Divorced"), required=False),
            _choice("gender", "gender", "Gender", ("Male", "Female", "Other"), required=False),
            _text("home_address", "home_address", "Home address", required=False, kind=FieldKind.TEXTAREA),
            _text("city", "city", "City", required=False),
            _text("state", "state", "State", required=False),
            _choice("country", "country", "Country", COUNTRIES, required=False),
            _text("zipcode", "zipcode", "Zip code", required=False),
            FieldSpec("referred_by", "Referred by", FieldKind.HIDDEN, alias="referredBy"),
        ),
    )
    education = WizardStep(
        key="education",
        title="Education",
        fields=(
            _choice("education_country", "education_country", "Country of education", COUNTRIES, required=False),
            _choice(
                "highest_level",
                "highest_level",
                "Highest level of education",
                ("Under-Graduate", "Post-Graduate", "Diploma"),
                required=False,
            ),
            _choice("grading_scheme", "grading_scheme", "Grading scheme", ("Percentage", "CGPA", "GPA"), required=False),
            _text("grade_average", "grade_average", "Grade average", required=False),
        ),
    )
    test_scores = WizardStep(
        key="test_scores",
        title="Test Scores",
        fields=(
            _choice("exam_type", "exam_type", "Exam type", ("IELTS", "TOEFL", "PTE", "Duolingo"), required=False),
            _text("exam_date", "exam_date", "Exam date", required=False, kind=FieldKind.DATE),
            _text("listening_score", "listening_score", "Listening", required=False),
            _text("reading_score", "reading_score", "Reading", required=False),
            _text("writing_score", "writing_score", "Writing", required=False),
            _text("speaking_score", "speaking_score", "Speaking", required=False),
            _text("overall_score", "overall_score", "Overall", required=False),
        ),
    )
    background = WizardStep(
        key="background",
        title="Background",
        terminal=True,
        fields=(
            _choice("visa_refusal", "visa_refusal", "Previous visa refusal", ("YES", "NO"), required=False),
            _choice("study_permit", "study_permit", "Existing study permit", ("YES", "NO"), required=False),
            _text(
                "background_details",
                "background_details",
                "Background details",
                required=False,
                kind=FieldKind.TEXTAREA,
            ),
        ),
    )
    return (personal, education, test_scores, background)


STUDENT_REGISTER_SCHEMA: Final[WizardSchema] = WizardSchema(
    WizardFlow.STUDENT_REGISTER, _student_steps(), verified_email_field="email"
)
AGENT_CREATE_SCHEMA: Final[WizardSchema] = WizardSchema(WizardFlow.AGENT_CREATE, _agent_steps(editing=False))
AGENT_EDIT_SCHEMA: Final[WizardSchema] = WizardSchema(WizardFlow.AGENT_EDIT, _agent_steps(editing=True))

WIZARD_SCHEMAS: Final[dict[WizardFlow, WizardSchema]] = {
    WizardFlow.STUDENT_REGISTER: STUDENT_REGISTER_SCHEMA,
    WizardFlow.AGENT_CREATE: AGENT_CREATE_SCHEMA,
    WizardFlow.AGENT_EDIT: AGENT_EDIT_SCHEMA,
}


def resolve_flow(value: object | None, *, default: WizardFlow = WizardFlow.STUDENT_REGISTER) -> WizardFlow:
    """Return the :class:`WizardFlow` named by ``value`` or ``default``."""

    if isinstance(value, WizardFlow):
        return value
    if isinstance(value, str):
        try:
            return WizardFlow(value.strip().lower())
        except ValueError:
            return default
    return default


def get_schema(flow: WizardFlow | str) -> WizardSchema:
    return WIZARD_SCHEMAS[resolve_flow(flow)]


__all__ = [
    "AGENT_CREATE_SCHEMA",
    "AGENT_EDIT_SCHEMA",
    "COUNTRIES",
    "INDIAN_STATES",
    "SERVICE_OPTIONS",
    "SPECIALIZATION_OPTIONS",
    "STUDENT_REGISTER_SCHEMA",
    "WIZARD_SCHEMAS",
    "WizardFlow",
    "get_schema",
    "resolve_flow",
]
