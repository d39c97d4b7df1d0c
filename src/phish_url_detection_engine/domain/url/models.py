"""URL-level feature models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LexicalFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    host: str = ""
    length: int = Field(default=0, ge=0)
    entropy: float = Field(default=0.0, ge=0.0)
    digit_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    symbol_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    letter_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    suspicious_keywords: int = Field(default=0, ge=0)
    has_ip_address: bool = False
    has_port: bool = False
    is_https: bool = False
    subdomain_count: int = Field(default=0, ge=0)
    path_depth: int = Field(default=0, ge=0)
    query_param_count: int = Field(default=0, ge=0)
    hyphen_count: int = Field(default=0, ge=0)
    digit_count: int = Field(default=0, ge=0)
    brand_in_host: bool = False
    tld: str = ""
    tld_risk: float = Field(default=0.3, ge=0.0, le=1.0)


class DomFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    form_count: int = Field(default=0, ge=0)
    has_login_form: bool = False
    form_target_external: bool = False
    obfuscated_scripts: bool = False
    iframe_count: int = Field(default=0, ge=0)
    hidden_iframe_count: int = Field(default=0, ge=0)
