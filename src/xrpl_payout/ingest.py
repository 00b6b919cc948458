"""CSV ingestion: recipient rows validated into ``RecipientInput`` records."""

import csv
import logging
from decimal import Decimal
from pathlib import Path
from typing import IO, Iterator

from pydantic import BaseModel, Field, ValidationError, field_validator

import xrpl_payout.constants as C
from xrpl_payout.errors import InputValidationError
from xrpl_payout.models import RecipientInput

log = logging.getLogger("xrpl_payout.ingest")

REQUIRED_COLUMNS = {"name", "address", "usd_amount"}

# Largest amount a row may carry; keeps the XRP conversion inside Decimal precision.
MAX_USD_AMOUNT = Decimal("1e12")


class RecipientRow(BaseModel):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    destination_tag: int | None = Field(default=None, ge=0, le=C.MAX_DESTINATION_TAG)
    usd_amount: Decimal = Field(gt=0, le=MAX_USD_AMOUNT)

    @field_validator("name", "address", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("destination_tag", mode="before")
    @classmethod
    def _blank_tag(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_recipient(self) -> RecipientInput:
        return RecipientInput(
            address=self.address,
            usd_amount=self.usd_amount,
            name=self.name,
            destination_tag=self.destination_tag,
        )


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err["loc"])
    return f"{loc}: {err['msg']}"


def iter_recipients(fh: IO[str]) -> Iterator[RecipientInput]:
    """Yield recipients from an open CSV stream. Row numbers count data rows from 1."""
    reader = csv.DictReader(fh)
    missing = REQUIRED_COLUMNS - set(reader.fieldnames or [])
    if missing:
        raise InputValidationError(0, f"missing columns: {', '.join(sorted(missing))}")
    for row_num, raw in enumerate(reader, start=1):
        try:
            yield RecipientRow.model_validate(raw).to_recipient()
        except ValidationError as e:
            raise InputValidationError(row_num, _first_error(e)) from e


def read_recipients(path: str | Path) -> list[RecipientInput]:
    """Parse and validate the whole input CSV before anything is paid."""
    with Path(path).open(newline="", encoding="utf-8") as fh:
        recipients = list(iter_recipients(fh))
    log.info("Parsed %s recipients from %s", len(recipients), path)
    return recipients
