"""图片上传工作器模块.

在 Qt 线程中运行异步上传，完成后通过信号把持久地址送回界面线程，
由界面线程交给元素控制器应用（元素内容只在界面线程修改）。
"""

from __future__ import annotations

import asyncio
from typing import Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from certdesigner.services.image_storage import ImageStorage
from certdesigner.utils.error_handler import log_and_describe
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


class UploadWorker(QObject):
    """上传工作器.

    Signals:
        upload_completed: 上传完成 (element_id, url, local_ref)
        upload_failed: 上传失败 (element_id, error_message)
        finished: 工作结束（无论成功与否）
    """

    upload_completed = pyqtSignal(str, str, str)
    upload_failed = pyqtSignal(str, str)
    finished = pyqtSignal()

    def __init__(
        self,
        storage: ImageStorage,
        file_path: str,
        user_id: str,
        element_id: str,
        local_ref: str,
        parent: Optional[QObject] = None,
    ) -> None:
        """初始化上传工作器.

        Args:
            storage: 图片存储
            file_path: 本地图片路径
            user_id: 用户标识
            element_id: 图片元素ID
            local_ref: 已显示的本地预览地址
            parent: 父对象
        """
        super().__init__(parent)
        self._storage = storage
        self._file_path = file_path
        self._user_id = user_id
        self._element_id = element_id
        self._local_ref = local_ref

    @property
    def element_id(self) -> str:
        return self._element_id

    @pyqtSlot()
    def run(self) -> None:
        """在新的事件循环中执行上传."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            url = loop.run_until_complete(self._storage.upload(self._file_path, self._user_id))
        except Exception as e:
            message = log_and_describe(e, f"上传图片失败: {self._file_path}")
            self.upload_failed.emit(self._element_id, message)
        else:
            self.upload_completed.emit(self._element_id, url, self._local_ref)
        finally:
            loop.close()
            self.finished.emit()


class UploadController(QObject):
    """上传控制器.

    每次上传使用独立线程，线程结束后自动清理。

    Example:
        >>> controller = UploadController(storage, user_id="u1")
        >>> controller.upload_completed.connect(on_completed)
        >>> controller.start_upload("/tmp/logo.png", element_id, local_ref)
    """

    upload_completed = pyqtSignal(str, str, str)  # element_id, url, local_ref
    upload_failed = pyqtSignal(str, str)  # element_id, error_message

    def __init__(self, storage: ImageStorage, user_id: str, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._storage = storage
        self._user_id = user_id
        self._jobs: list[tuple[QThread, UploadWorker]] = []

    @property
    def active_count(self) -> int:
        """进行中的上传数量."""
        return len(self._jobs)

    def start_upload(self, file_path: str, element_id: str, local_ref: str) -> None:
        """开始后台上传."""
        thread = QThread(self)
        worker = UploadWorker(self._storage, file_path, self._user_id, element_id, local_ref)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.upload_completed.connect(self.upload_completed.emit)
        worker.upload_failed.connect(self.upload_failed.emit)
        worker.finished.connect(thread.quit)
        thread.finished.connect(lambda: self._cleanup(thread, worker))

        self._jobs.append((thread, worker))
        thread.start()
        logger.info(f"开始上传图片: {file_path}")

    def _cleanup(self, thread: QThread, worker: UploadWorker) -> None:
        self._jobs = [(t, w) for t, w in self._jobs if t is not thread]
        worker.deleteLater()
        thread.deleteLater()

    def stop_all(self) -> None:
        """等待所有上传线程结束."""
        for thread, _ in list(self._jobs):
            thread.quit()
            thread.wait()
        self._jobs.clear()
