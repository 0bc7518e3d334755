from typing import Optional


class DrainError(RuntimeError):
    """Base class for failures surfaced by a drain operation."""


class StatusQueryError(DrainError):
    """The service list could not be read within the retry budget."""


class ServiceNotFound(DrainError):
    def __init__(self, hostname: str, binary: str):
        super().__init__(f"Cannot find {binary} service with hostname: {hostname}")
        self.hostname = hostname
        self.binary = binary


class AdmissionChangeError(DrainError):
    """Enabling or disabling scheduling failed; the cached status is unchanged."""


class VMEnumerationError(DrainError):
    """Listing the VMs resident on the node failed. The drain is aborted."""


class MigrationIssueError(DrainError):
    """
    No live-migration request for a VM was accepted.
    Recorded on the MigrationTask, never raised out of a drain.
    """
    def __init__(self, vm_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot run migration of VM {vm_id}: {cause}")
        self.vm_id = vm_id
        self.cause = cause


class MigrationPollError(DrainError):
    """A host lookup for a migrating VM failed. Logged; polling continues."""
    def __init__(self, vm_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot update VM {vm_id} status: {cause}")
        self.vm_id = vm_id
        self.cause = cause


class NovaAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BlockMigrationUnsupported(NovaAPIError):
    """Nova refused block migration because the instance storage is shared."""


class RetryError(Exception):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryCancelled(Exception):
    """The cancel event was set while waiting between attempts."""
