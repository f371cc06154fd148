"""
POSSync File-Exchange Engine.

Turns a shared NAXML directory into a replayable batch transport:

    <base>/Import/            framework writes, POS reads
    <base>/Export/            POS writes, framework reads
    <base>/Export/Processed/  archived after a successful import
    <base>/Export/Error/      quarantined after a failed import

Every read, write, archive and quarantine path is checked to stay under
its directory. Import/ and Export/ are never created implicitly; their
absence is a connection failure. Archive and error directories are
created on demand.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable
import errno
import hashlib
import logging
import os
import shutil
import time

from possync.config import FileExchangeSettings
from possync.errors import ErrorCode, POSAdapterError, normalize_error
from possync.file_exchange.naxml import EXPORT_PREFIXES
from possync.file_exchange.paths import file_timestamp, glob_to_regex, resolve_under
from possync.file_exchange.states import FileLifecycle, FileState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileExchangeLayout:
    base_path: Path
    import_dir: Path
    export_dir: Path
    archive_dir: Path
    error_dir: Path

    @classmethod
    def from_base(
        cls,
        base_path: str | Path,
        archive_path: str | Path | None = None,
        error_path: str | Path | None = None,
        settings: FileExchangeSettings | None = None,
    ) -> "FileExchangeLayout":
        """Standard layout; relative archive/error overrides resolve against the base."""
        s = settings or FileExchangeSettings()
        base = Path(base_path)
        export_dir = base / s.export_dir

        def _override(value: str | Path | None, default: Path) -> Path:
            if value is None:
                return default
            path = Path(value)
            return path if path.is_absolute() else base / path

        return cls(
            base_path=base,
            import_dir=base / s.import_dir,
            export_dir=export_dir,
            archive_dir=_override(archive_path, export_dir / s.processed_dir),
            error_dir=_override(error_path, export_dir / s.error_dir),
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class ImportOutcome:
    """What a handler reports back for one successfully parsed file."""
    document_type: str | None = None
    record_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    records: list[Any] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileExchangeResult:
    """Outcome of processing one file. Immutable once returned."""
    success: bool
    source_path: str
    file_name: str
    state: FileState
    record_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    archived: bool = False
    destination_path: str | None = None
    content_hash: str | None = None
    document_type: str | None = None
    records: tuple[Any, ...] = ()
    errors: tuple[str, ...] = ()
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "source_path": self.source_path,
            "file_name": self.file_name,
            "state": self.state.value,
            "record_count": self.record_count,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "archived": self.archived,
            "destination_path": self.destination_path,
            "content_hash": self.content_hash,
            "document_type": self.document_type,
            "errors": list(self.errors),
            "error_code": self.error_code,
        }


@dataclass(frozen=True)
class FileExportResult:
    success: bool
    document_type: str
    record_count: int
    file_path: str | None = None
    file_name: str | None = None
    file_size_bytes: int = 0
    file_hash: str | None = None
    duration_ms: float = 0.0
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "document_type": self.document_type,
            "record_count": self.record_count,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "file_size_bytes": self.file_size_bytes,
            "file_hash": self.file_hash,
            "duration_ms": round(self.duration_ms, 1),
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


@dataclass
class DirectoryStatus:
    problems: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


ImportHandler = Callable[[bytes, Path], ImportOutcome]


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class FileExchangeEngine:
    """Directory-convention import/export for one base path.

    Assumes it is the only process acting on the base path.
    """

    def __init__(
        self,
        layout: FileExchangeLayout,
        archive_processed_files: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.layout = layout
        self.archive_processed_files = archive_processed_files
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # --- Discovery & read ---

    def discover(self, patterns: Iterable[str]) -> list[Path]:
        """Files in Export/ matching any glob (case-insensitive), sorted by name."""
        directory = self.layout.export_dir
        compiled = [glob_to_regex(p) for p in patterns]
        try:
            entries = list(directory.iterdir())
        except FileNotFoundError:
            logger.warning("Export directory does not exist: %s", directory)
            return []

        matches = [
            entry for entry in entries
            if entry.is_file() and any(rx.match(entry.name) for rx in compiled)
        ]
        return sorted(resolve_under(directory, entry.name) for entry in matches)

    def read_bytes(self, path: Path | str) -> bytes:
        target = resolve_under(self.layout.export_dir, path)
        return target.read_bytes()

    # --- Archive & quarantine ---

    def archive(self, path: Path | str) -> Path:
        """Move a processed file to the archive directory as ``<ts>_<name>``."""
        return self._relocate(path, self.layout.archive_dir, "")

    def quarantine(self, path: Path | str) -> Path:
        """Move a failed file to the error directory as ``<ts>_ERROR_<name>``."""
        return self._relocate(path, self.layout.error_dir, "ERROR_")

    def _relocate(self, path: Path | str, directory: Path, tag: str) -> Path:
        """Move without ever replacing an existing file at the destination."""
        source = resolve_under(self.layout.export_dir, path)
        destination = resolve_under(directory, f"{file_timestamp(self.now())}_{tag}{source.name}")
        directory.mkdir(parents=True, exist_ok=True)
        try:
            try:
                os.link(source, destination)
            except OSError as exc:
                if exc.errno != errno.EXDEV:
                    raise
                with source.open("rb") as src, destination.open("xb") as dst:
                    shutil.copyfileobj(src, dst)
                shutil.copystat(source, destination)
        except FileExistsError as exc:
            raise POSAdapterError(
                f"Refusing to overwrite {destination}",
                409,
                ErrorCode.DESTINATION_EXISTS,
                details={"path": str(destination)},
            ) from exc
        source.unlink()
        return destination

    # --- Export ---

    def export(self, prefix: str, content: str | bytes, record_count: int = 0) -> FileExportResult:
        """Write ``<prefix>_<ts>.xml`` into Import/ for the POS to pick up."""
        start = time.perf_counter()
        document_type = EXPORT_PREFIXES[prefix].value if prefix in EXPORT_PREFIXES else prefix
        directory = self.layout.import_dir
        file_name = f"{prefix}_{file_timestamp(self.now())}.xml"
        target = resolve_under(directory, file_name)

        if not directory.is_dir():
            raise POSAdapterError(
                f"Import directory not found: {directory}",
                503,
                ErrorCode.DIRECTORY_NOT_FOUND,
                details={"path": str(directory)},
            )

        data = content.encode("utf-8") if isinstance(content, str) else content
        staging = directory / f".{file_name}.tmp"
        try:
            staging.write_bytes(data)
            # link() publishes the complete file and fails if the name is taken
            os.link(staging, target)
        except FileExistsError as exc:
            raise POSAdapterError(
                f"Refusing to overwrite existing export {file_name}",
                409,
                ErrorCode.EXPORT_FAILED,
                details={"path": str(target)},
            ) from exc
        except OSError as exc:
            raise POSAdapterError(
                f"Failed to write {file_name}: {exc}",
                500,
                ErrorCode.EXPORT_FAILED,
                details={"path": str(target)},
            ) from exc
        finally:
            staging.unlink(missing_ok=True)

        result = FileExportResult(
            success=True,
            document_type=document_type,
            record_count=record_count,
            file_path=str(target),
            file_name=file_name,
            file_size_bytes=target.stat().st_size,
            file_hash=content_hash(data),
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info("Exported %s (%d records, %d bytes)", file_name, record_count, result.file_size_bytes)
        return result

    # --- Connectivity ---

    def check_directories(self) -> DirectoryStatus:
        """Import/ must be read-write and Export/ readable; archive dirs are created."""
        status = DirectoryStatus()
        imp, exp = self.layout.import_dir, self.layout.export_dir

        if not imp.is_dir():
            status.problems.append(f"Import directory not found: {imp}")
        elif not os.access(imp, os.R_OK | os.W_OK):
            status.problems.append(f"Import directory is not readable and writable: {imp}")

        if not exp.is_dir():
            status.problems.append(f"Export directory not found: {exp}")
        elif not os.access(exp, os.R_OK):
            status.problems.append(f"Export directory is not readable: {exp}")

        if self.archive_processed_files and status.ok:
            for directory in (self.layout.archive_dir, self.layout.error_dir):
                if not directory.is_dir():
                    directory.mkdir(parents=True, exist_ok=True)
                    status.created.append(str(directory))
        return status

    # --- Batch processing ---

    def process(self, patterns: Iterable[str], handler: ImportHandler) -> list[FileExchangeResult]:
        """Import every matching file; one bad file never stops the batch."""
        return [self.process_file(path, handler) for path in self.discover(patterns)]

    def process_file(self, path: Path, handler: ImportHandler) -> FileExchangeResult:
        lifecycle = FileLifecycle(path=Path(path))
        digest: str | None = None
        try:
            data = self.read_bytes(path)
            digest = content_hash(data)
            lifecycle.transition(FileState.READ, content_hash=digest)
            outcome = handler(data, lifecycle.path)
        except Exception as exc:
            error = normalize_error(exc)
            lifecycle.transition(FileState.REJECTED, error_code=error.error_code)
            logger.error("Failed to import %s: %s (%s)", lifecycle.path.name, error.message, error.error_code)
            destination = self._quarantine_quietly(lifecycle.path, error)
            return FileExchangeResult(
                success=False,
                source_path=str(path),
                file_name=lifecycle.path.name,
                state=lifecycle.current_state,
                destination_path=str(destination) if destination else None,
                content_hash=digest,
                errors=(error.message,),
                error_code=error.error_code,
            )

        lifecycle.transition(FileState.IMPORTED, records=outcome.record_count)
        errors = list(outcome.errors)
        destination: Path | None = None
        if self.archive_processed_files:
            try:
                destination = self.archive(lifecycle.path)
            except (OSError, POSAdapterError) as exc:
                # Records are already imported; the file stays in Export/.
                logger.error("Imported %s but could not archive it: %s", lifecycle.path.name, exc)
                errors.append(f"Archive failed: {exc}")
        logger.info(
            "Imported %s: %d/%d record(s)%s",
            lifecycle.path.name, outcome.success_count, outcome.record_count,
            " (archived)" if destination else "",
        )
        return FileExchangeResult(
            success=True,
            source_path=str(path),
            file_name=lifecycle.path.name,
            state=lifecycle.current_state,
            record_count=outcome.record_count,
            success_count=outcome.success_count,
            failed_count=outcome.failed_count,
            archived=destination is not None,
            destination_path=str(destination) if destination else None,
            content_hash=digest,
            document_type=outcome.document_type,
            records=tuple(outcome.records),
            errors=tuple(errors),
        )

    def _quarantine_quietly(self, path: Path, error: POSAdapterError) -> Path | None:
        if not self.archive_processed_files or error.error_code == ErrorCode.PATH_TRAVERSAL.value:
            return None
        try:
            return self.quarantine(path)
        except (OSError, POSAdapterError) as exc:
            logger.error("Could not move %s to the error directory: %s", path.name, exc)
            return None
