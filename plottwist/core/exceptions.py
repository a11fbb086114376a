"""
도메인 예외

서비스 계층은 아래 예외를 던지고, main.py의 예외 핸들러가 HTTP 응답으로 변환한다.
"""

from fastapi import status


class PlotTwistError(Exception):
    """모든 도메인 예외의 기반 클래스"""
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "요청을 처리할 수 없습니다."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(PlotTwistError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "리소스를 찾을 수 없습니다."


class ForbiddenError(PlotTwistError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "접근 권한이 없습니다."


class NotYourTurnError(ForbiddenError):
    default_detail = "지금은 당신의 차례가 아닙니다."


class ValidationFailedError(PlotTwistError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "유효하지 않은 요청입니다."


class StoryCompleteError(ValidationFailedError):
    default_detail = "이미 완결된 스토리입니다."


class LimitExceededError(ValidationFailedError):
    default_detail = "작성 제한을 초과했습니다."


class ConflictError(PlotTwistError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "이미 처리된 요청입니다."


class GoneError(PlotTwistError):
    status_code = status.HTTP_410_GONE
    default_detail = "만료된 요청입니다."
