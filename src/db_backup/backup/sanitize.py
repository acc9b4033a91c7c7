"""Redaction of credential-bearing fields before an archive is persisted.

Only tables on the allow-list are touched.  Unknown tables pass through
unchanged: a table added to the schema later is backed up in full rather
than breaking backups, at the cost of not being redacted until it is
listed here.
"""

from typing import Literal

from db_backup.backup.models import Record

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("passwordHash", "phone"),
    "accounts": ("refresh_token", "access_token", "id_token"),
    "sessions": ("sessionToken",),
}


class Sanitizer:
    """Strip or mask sensitive fields per table.

    Args:
        fields: Table name -> sensitive column names.
        mode: ``"omit"`` drops the keys, ``"mask"`` replaces present
            values with ``REDACTED``.
    """

    def __init__(
        self,
        fields: dict[str, tuple[str, ...]] | None = None,
        mode: Literal["omit", "mask"] = "omit",
    ) -> None:
        if mode not in ("omit", "mask"):
            raise ValueError(f"Unknown redaction mode '{mode}' (expected 'omit' or 'mask')")
        self.fields = dict(SENSITIVE_FIELDS if fields is None else fields)
        self.mode = mode

    def is_sensitive(self, table: str) -> bool:
        return table in self.fields

    def apply(self, table: str, records: list[Record]) -> list[Record]:
        """Return sanitized copies of ``records``; the input is never mutated."""
        sensitive = self.fields.get(table)
        if not sensitive:
            return [dict(r) for r in records]

        if self.mode == "omit":
            return [
                {k: v for k, v in r.items() if k not in sensitive}
                for r in records
            ]

        masked: list[Record] = []
        for r in records:
            copy = dict(r)
            for field in sensitive:
                if copy.get(field) is not None:
                    copy[field] = REDACTED
            masked.append(copy)
        return masked
