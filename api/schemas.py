"""Pydantic schemas for the upload API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UploadVideoRequest(BaseModel):
    """Body of POST /facebook/upload-video."""

    model_config = ConfigDict(str_strip_whitespace=True)

    video_url: str = Field(..., min_length=1, max_length=4096, description="HTTP(S) URL of the source video")
    ad_account_id: str = Field(
        ..., min_length=1, max_length=64, description="Ad account id, with or without the act_ prefix"
    )

    @field_validator("ad_account_id")
    @classmethod
    def validate_account_id(cls, v):
        """Account ids are numeric, optionally prefixed with act_."""
        digits = v[4:] if v.startswith("act_") else v
        if not digits.isdigit():
            raise ValueError("ad_account_id must be numeric (optionally prefixed with act_)")
        return v


class UploadVideoResponse(BaseModel):
    """Successful upload. ``warning`` is set when processing is not yet confirmed."""

    video_id: str
    warning: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
