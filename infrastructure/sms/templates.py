"""OTP message text, shared by every provider."""

_PURPOSE_WORDING = {
    "registration": "registration",
    "login": "login",
}


def otp_message(brand: str, purpose: str, ttl_minutes: int = 10, *, var: str = "{#var#}") -> str:
    """Return the OTP message with *var* where the code goes.

    The default placeholder is the DLT template variable, which must match the
    approved template text exactly.
    """
    wording = _PURPOSE_WORDING.get(purpose, "verification")
    return f"Your {brand} {wording} OTP is: {var}. Valid for {ttl_minutes} minutes."
