"""Address validation for name resolution."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from eth_utils import is_address

ADDRESS_LENGTH = 42  # "0x" + 40 hex characters


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one address."""

    is_valid: bool
    normalized: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchValidationResult:
    """Outcome of validating a batch request."""

    is_valid: bool
    addresses: List[str]
    error: Optional[str] = None


def validate_ethereum_address(address: Any) -> ValidationResult:
    """
    Validate an Ethereum address.

    Mixed-case input must carry a valid EIP-55 checksum.

    Args:
        address: Candidate address

    Returns:
        ValidationResult with the lowercase address when valid
    """
    if not address or not isinstance(address, str):
        return ValidationResult(False, error="Address must be a non-empty string")

    trimmed = address.strip()

    if not trimmed:
        return ValidationResult(False, error="Address cannot be empty")

    if not trimmed.startswith("0x"):
        return ValidationResult(False, error="Address must start with 0x")

    if len(trimmed) != ADDRESS_LENGTH:
        return ValidationResult(
            False, error="Address must be 42 characters long (including 0x)"
        )

    if not is_address(trimmed):
        return ValidationResult(False, error="Invalid Ethereum address format")

    return ValidationResult(True, normalized=trimmed.lower())


def sanitize_address(address: Any) -> Optional[str]:
    """Return the normalized address, or None if invalid."""
    return validate_ethereum_address(address).normalized


def filter_valid_addresses(addresses: Sequence[Any]) -> List[str]:
    """Keep only valid addresses, normalized, in their original order."""
    valid = []
    for address in addresses:
        normalized = sanitize_address(address)
        if normalized is not None:
            valid.append(normalized)
    return valid


def validate_api_address_param(param: Any) -> ValidationResult:
    """Validate the address parameter of a single-resolution request."""
    if not param:
        return ValidationResult(False, error="Address parameter is required")

    validation = validate_ethereum_address(param)
    if not validation.is_valid:
        return ValidationResult(False, error=validation.error or "Invalid address format")
    return validation


def validate_api_batch_params(addresses: Any, max_batch_size: int = 50) -> BatchValidationResult:
    """Validate the address list of a batch-resolution request."""
    if addresses is None:
        return BatchValidationResult(False, [], "Addresses parameter is required")

    if not isinstance(addresses, list):
        return BatchValidationResult(False, [], "Addresses must be an array")

    if not addresses:
        return BatchValidationResult(False, [], "At least one address is required")

    if len(addresses) > max_batch_size:
        return BatchValidationResult(
            False, [], f"Maximum {max_batch_size} addresses allowed per request"
        )

    valid = filter_valid_addresses(addresses)
    if not valid:
        return BatchValidationResult(False, [], "No valid addresses found in request")

    # Drop duplicates, keeping first occurrence
    return BatchValidationResult(True, list(dict.fromkeys(valid)))
