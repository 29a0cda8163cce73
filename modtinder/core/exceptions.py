class ModTinderError(Exception):
    """서비스 공통 예외"""


class ConfigurationError(ModTinderError):
    """설정값 누락 또는 오류 (시작 시 치명적)"""


class FeedDownloadError(ModTinderError):
    """모드 피드 다운로드 실패 (네트워크 오류, 2xx 이외 응답)"""

    def __init__(self, url: str, message: str, status_code: int = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"모드 피드 다운로드 실패 [{url}]: {message}")


class FeedCacheError(ModTinderError):
    """피드 캐시 파일 읽기/쓰기 실패"""

    def __init__(self, path, message: str):
        self.path = path
        super().__init__(f"피드 캐시 처리 실패 [{path}]: {message}")


class NoModsFoundError(ModTinderError):
    """조건에 맞는 모드가 없을 때 (DB 오류와 구분)"""


class UserAlreadyExistsError(ModTinderError):
    """이미 사용 중인 사용자 이름"""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"이미 사용 중인 사용자 이름입니다: {username}")


class AuthenticationError(ModTinderError):
    """로그인 토큰이 없거나 유효하지 않음"""


class PermissionDeniedError(ModTinderError):
    """관리자 권한 필요"""
