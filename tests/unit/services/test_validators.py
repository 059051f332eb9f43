from __future__ import annotations

import pytest

from src.huatu.config import CredentialPolicy
from src.huatu.domain.models import GenerationRequest
from src.huatu.exceptions import ValidationError
from src.huatu.services.validators import (
    build_generation_request,
    check_credential,
    validate_for_submission,
)
from tests.conftest import CREDENTIAL, valid_params

POLICY = CredentialPolicy()


@pytest.mark.parametrize(
    ("credential", "problem"),
    [
        (None, "credential is not set"),
        ("   ", "credential is not set"),
        ("abcd-0123456789abcdef", "credential format is invalid"),
        ("jjdd-short", "credential format is invalid"),
        (CREDENTIAL, None),
    ],
)
def test_check_credential(credential, problem) -> None:
    assert check_credential(credential, POLICY) == problem


def test_missing_model_is_rejected() -> None:
    request = GenerationRequest.model_validate(valid_params(sdModel=""))

    with pytest.raises(ValidationError, match="model id is required"):
        validate_for_submission(request, POLICY)


def test_missing_credential_is_rejected_first() -> None:
    request = GenerationRequest.model_validate(valid_params(sdModel="", jjddApiKey=""))

    with pytest.raises(ValidationError, match="credential is not set"):
        validate_for_submission(request, POLICY)


@pytest.mark.parametrize(
    "override",
    [
        {"width": 100},
        {"height": 4000},
        {"count": 5},
        {"steps": 9},
        {"cfgScale": 31},
        {"seed": -2},
        {"clipSkip": 13},
        {"loras": [{"model": "1", "weight": 3}]},
    ],
)
def test_out_of_range_parameters_raise_validation_error(override) -> None:
    with pytest.raises(ValidationError):
        build_generation_request(valid_params(**override))


def test_build_accepts_aliases_and_strips_whitespace() -> None:
    request = build_generation_request(valid_params(prompt="  cat  ", clipSkip=2, sdVae="custom.vae"))

    assert request.prompt == "cat"
    assert request.clip_skip == 2
    assert request.vae == "custom.vae"
    assert request.credential == CREDENTIAL
    assert CREDENTIAL not in repr(request)
