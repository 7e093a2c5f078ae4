# Import models so they register with SQLAlchemy metadata.
from authapi.models.user import User  # noqa: F401
from authapi.models.verification_code import CodePurpose, VerificationCode  # noqa: F401
