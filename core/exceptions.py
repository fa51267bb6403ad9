from fastapi import HTTPException, status

class NephslairException(HTTPException):
    """Base exception for this application."""
    def __init__(self, status_code: int, detail: str, code: str = None):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code # Application-specific error code, rendered as "error" in the envelope

# --- Generic ---

class InvalidRequestException(NephslairException):
    def __init__(self, detail: str = "Invalid request."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="INVALID_REQUEST")

# --- Auth ---

class AuthenticationRequiredException(NephslairException):
    def __init__(self, detail: str = "No authentication token, access denied.", code: str = "NO_TOKEN"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, code=code)
        self.headers = {"WWW-Authenticate": "Bearer"}

class NotAuthorizedError(NephslairException):
    def __init__(self, detail: str = "You are not authorized to perform this action.", code: str = "NOT_AUTHORIZED"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail, code=code)

# --- Polls ---

class PollNotFoundException(NephslairException):
    def __init__(self, poll_id=None):
        detail = "Poll not found."
        if poll_id is not None:
            detail = f"Poll with ID '{poll_id}' not found."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="POLL_NOT_FOUND")

class PollOptionNotFoundException(NephslairException):
    def __init__(self, option_id=None):
        detail = "Poll option not found."
        if option_id is not None:
            detail = f"Poll option with ID '{option_id}' not found in this poll."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="POLL_OPTION_NOT_FOUND")

class PollClosedException(NephslairException):
    def __init__(self, detail: str = "This poll has been finalized and no longer accepts votes."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="POLL_CLOSED")

class PollInactiveException(NephslairException):
    def __init__(self, detail: str = "Poll is not active."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="POLL_INACTIVE")

class PollAlreadyFinalizedException(NephslairException):
    def __init__(self, detail: str = "Poll is already finalized."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="POLL_ALREADY_FINALIZED")

class PollUpdateNotAllowedException(NephslairException):
    def __init__(self, detail: str = "This poll cannot be updated due to its current state."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="POLL_UPDATE_NOT_ALLOWED")

class VoteConflictException(NephslairException):
    def __init__(self, detail: str = "Your vote was changed by a concurrent request. Please retry."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="VOTE_CONFLICT")

# --- Content ---

class ProjectNotFoundException(NephslairException):
    def __init__(self, project_id=None):
        detail = "Project not found." if project_id is None else f"Project with ID '{project_id}' not found."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="PROJECT_NOT_FOUND")

class PostNotFoundException(NephslairException):
    def __init__(self, post_id=None):
        detail = "Post not found." if post_id is None else f"Post with ID '{post_id}' not found."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="POST_NOT_FOUND")

class ReleaseNotFoundException(NephslairException):
    def __init__(self, release_id=None):
        detail = "Release not found." if release_id is None else f"Release with ID '{release_id}' not found."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="RELEASE_NOT_FOUND")

class AttachmentExistsException(NephslairException):
    def __init__(self, kind: str, child_id, post_id):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{kind.capitalize()} '{child_id}' is already attached to post '{post_id}'.",
            code="ATTACHMENT_EXISTS",
        )

class AttachmentNotFoundException(NephslairException):
    def __init__(self, kind: str, child_id, post_id):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{kind.capitalize()} '{child_id}' is not attached to post '{post_id}'.",
            code="ATTACHMENT_NOT_FOUND",
        )

# --- Comments ---

class CommentNotFoundException(NephslairException):
    def __init__(self, comment_id=None):
        detail = "Comment not found." if comment_id is None else f"Comment with ID '{comment_id}' not found."
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code="COMMENT_NOT_FOUND")

class CommentDeletedException(NephslairException):
    def __init__(self, detail: str = "This comment has been deleted."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="COMMENT_DELETED")

class InvalidParentCommentException(NephslairException):
    def __init__(self, detail: str = "Parent comment belongs to a different post."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code="INVALID_PARENT_COMMENT")
