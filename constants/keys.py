class UIKeys:
    """Keys for UI widgets in ``st.session_state``."""

    FIELD_PREFIX = "ui.field."
    UPLOAD_PREFIX = "ui.upload."
    STEP_FORM = "ui.wizard.step_form"
    REMOVE_DOCUMENT_PREFIX = "ui.document.remove."
    OTP_CODE_PREFIX = "ui.otp.code."
    OTP_SEND_PREFIX = "ui.otp.send."
    OTP_VERIFY_PREFIX = "ui.otp.verify."


class StateKeys:
    """Keys for data stored in ``st.session_state``."""

    GATE_RESULT = "gate.result"
    API_COOKIES = "api.cookies"
    DRAFTS = "wizard.drafts"
    LAST_OUTCOME = "wizard.last_outcome"
    OTP_SENT_TO = "otp.sent_to"
