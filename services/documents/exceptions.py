"""
Document Workflow Exceptions

Custom exceptions for template, document, contract and signature errors.
Every one of them is recoverable and reported back to the caller.
"""


class DocumentError(Exception):
    """Base exception for all document workflow errors."""
    pass


class ConfigurationError(DocumentError):
    """
    Raised when shipped template definitions are invalid.

    This includes YAML syntax errors and schema validation failures
    in the default template files.
    """
    pass


class ValidationError(DocumentError):
    """
    Raised when template or field input is malformed.

    Contains details about what specifically failed so the caller
    can correct the input.
    """
    def __init__(self, message: str, template_id: str = None, field: str = None):
        self.template_id = template_id
        self.field = field
        super().__init__(message)


class TemplateNotFound(ValidationError):
    """Raised when a template id is unknown."""
    def __init__(self, template_id: str):
        super().__init__(f"Template not found: {template_id}", template_id=template_id)


class DocumentNotFound(ValidationError):
    """Raised when a document id is unknown."""
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class ContractNotFound(ValidationError):
    """Raised when a contract id is unknown."""
    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class AlreadySigned(DocumentError):
    """Raised when a recipient tries to sign the same document twice."""
    def __init__(self, document_id: str, signer_id: str):
        self.document_id = document_id
        self.signer_id = signer_id
        super().__init__(f"User {signer_id} has already signed document {document_id}")


class NotARecipient(DocumentError):
    """Raised when the signer is not one of the document's recipients."""
    def __init__(self, document_id: str, signer_id: str):
        self.document_id = document_id
        self.signer_id = signer_id
        super().__init__(f"User {signer_id} is not a recipient of document {document_id}")


class InvalidTransition(DocumentError):
    """Raised when a contract is asked to leave a terminal status."""
    def __init__(self, contract_id: str, current_status: str, target_status: str):
        self.contract_id = contract_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Contract {contract_id} cannot move from '{current_status}' to '{target_status}'"
        )


class PermissionDenied(DocumentError):
    """Raised when the acting role is not allowed to perform an action."""
    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role '{role}' is not allowed to {action}")


class SigningInProgress(DocumentError):
    """Raised when a second signing render starts for the same document and recipient."""
    def __init__(self, document_id: str, signer_id: str):
        self.document_id = document_id
        self.signer_id = signer_id
        super().__init__(f"Signature for document {document_id} by {signer_id} is already being processed")


class RenderError(DocumentError):
    """
    Raised when the renderer fails to produce an artifact.

    Wraps the underlying error. No workflow state is changed when
    this is raised, so the caller may retry.
    """
    pass


class PersistenceError(DocumentError):
    """
    Raised when the underlying key-value store fails.

    The operation is aborted and must not be assumed committed.
    """
    def __init__(self, message: str, key: str = None):
        self.key = key
        super().__init__(message)


class ArtifactNotFound(PersistenceError):
    """
    Raised when an artifact locator names no stored file, or points
    outside the artifact storage root.
    """
    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Artifact not found: {locator}", key=locator)
