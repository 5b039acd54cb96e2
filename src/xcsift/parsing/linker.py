"""Stateful parsing of ``ld`` diagnostics.

Undefined-symbol and duplicate-symbol errors span several lines::

    Undefined symbols for architecture arm64:
      "_OBJC_CLASS_$_Foo", referenced from:
          objc-class-ref in ViewController.o
    ld: symbol(s) not found for architecture arm64

    duplicate symbol '_shared' in:
        /tmp/A.o
        /tmp/B.o
    ld: 1 duplicate symbol for architecture arm64
"""

from __future__ import annotations

from xcsift.parsing.models import LinkerError

_UNDEFINED_PREFIX = "Undefined symbols for architecture "
_FRAMEWORK_PREFIX = "ld: framework not found "
_LIBRARY_PREFIX = "ld: library not found for "
_DUPLICATE_PREFIXES = ("duplicate symbol '", 'duplicate symbol "')


class LinkerBlockParser:
    """Feeds lines one at a time and collects deduplicated linker errors."""

    def __init__(self) -> None:
        self.errors: list[LinkerError] = []
        self._seen: set[str] = set()
        self._architecture: str | None = None
        self._pending_symbol: str | None = None
        self._duplicate_symbol: str | None = None
        self._conflicting_files: list[str] = []

    def _add(self, error: LinkerError) -> None:
        if error.dedup_key not in self._seen:
            self._seen.add(error.dedup_key)
            self.errors.append(error)

    def feed(self, line: str) -> bool:
        """Consume ``line`` if it belongs to linker output. Returns True if handled."""
        trimmed = line.strip(" \t")

        if trimmed.startswith(_UNDEFINED_PREFIX):
            arch, sep, _ = trimmed[len(_UNDEFINED_PREFIX) :].partition(":")
            if sep:
                self._architecture = arch
            return True

        if trimmed.startswith('"') and '", referenced from:' in trimmed:
            self._pending_symbol = trimmed[1 : trimmed.index('", referenced from:')]
            return True

        if (
            self._pending_symbol is not None
            and self._architecture is not None
            and " in " in trimmed
            and trimmed.endswith((".o", ".a"))
        ):
            referenced_from = trimmed.split(" in ", 1)[1]
            self._add(
                LinkerError(
                    symbol=self._pending_symbol,
                    architecture=self._architecture,
                    referenced_from=referenced_from,
                )
            )
            self._pending_symbol = None
            return True

        if trimmed.startswith(_FRAMEWORK_PREFIX):
            framework = trimmed[len(_FRAMEWORK_PREFIX) :]
            self._add(LinkerError(message=f"framework not found {framework}"))
            return True

        if trimmed.startswith(_LIBRARY_PREFIX):
            library = trimmed[len(_LIBRARY_PREFIX) :]
            self._add(LinkerError(message=f"library not found for {library}"))
            return True

        if trimmed.startswith(_DUPLICATE_PREFIXES):
            quote = trimmed[len("duplicate symbol ")]
            rest = trimmed[len("duplicate symbol ") + 1 :]
            end = rest.find(quote)
            if end >= 0:
                self._duplicate_symbol = rest[:end]
                self._conflicting_files = []
            return True

        if (
            self._duplicate_symbol is not None
            and trimmed.endswith((".o", ".a"))
            and line.startswith(("    ", "\t"))
        ):
            self._conflicting_files.append(trimmed)
            return True

        if trimmed.startswith("ld: building for ") and "but linking" in trimmed:
            self._add(LinkerError(message=trimmed))
            return True

        if trimmed.startswith("ld: ") and "duplicate symbol" in trimmed:
            if self._duplicate_symbol is not None:
                _, _, arch = trimmed.partition("for architecture ")
                self._add(
                    LinkerError(
                        symbol=self._duplicate_symbol,
                        architecture=arch,
                        conflicting_files=tuple(self._conflicting_files),
                    )
                )
                self._duplicate_symbol = None
                self._conflicting_files = []
            return True

        # Summary of the undefined-symbol block; details were already captured
        return trimmed.startswith("ld: symbol(s) not found for architecture ")
