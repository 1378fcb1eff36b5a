"""
서비스 기본 클래스
"""
import logging

from calevid.core.interfaces import ICreditStore


class BaseService:
    """저장소를 사용하는 서비스의 기본 클래스"""

    def __init__(self, store: ICreditStore):
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)
