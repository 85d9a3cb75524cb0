"""
超时与取消控制服务
"""
import logging
import threading
from typing import Any, Callable, List, Optional

from .error_handler import CheckCertNetError, ProbeTimeoutError


class CancelContext:
    """
    带截止时间的取消上下文

    到期或显式取消时依次执行已注册的回调（每个回调只执行一次），
    子进程通过回调与上下文绑定，取消即终止。
    """

    def __init__(self, timeout: float):
        """
        初始化取消上下文

        Args:
            timeout: 超时时间（秒）
        """
        self.timeout = timeout
        self.expired = False
        self.logger = logging.getLogger(__name__)

        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], Any]] = []
        self._timer: Optional[threading.Timer] = None

    def start(self) -> "CancelContext":
        """启动截止时间计时器"""
        self._timer = threading.Timer(self.timeout, self._expire)
        self._timer.daemon = True
        self._timer.start()
        return self

    def __enter__(self) -> "CancelContext":
        if self._timer is None:
            self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def add_callback(self, callback: Callable[[], Any]):
        """
        注册取消回调，上下文已取消时立即执行

        Args:
            callback: 无参回调
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def remove_callback(self, callback: Callable[[], Any]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def cancel(self):
        """取消上下文（幂等）"""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        if self._timer is not None:
            self._timer.cancel()

        for callback in callbacks:
            self._run_callback(callback)

    def _expire(self):
        self.expired = True
        self.logger.debug(f"上下文已到期（{self.timeout}秒）")
        self.cancel()

    def _run_callback(self, callback: Callable[[], Any]):
        try:
            callback()
        except Exception as e:
            self.logger.error(f"执行取消回调时发生错误: {type(e).__name__}: {str(e)}")


class ResultCell:
    """
    单次赋值的结果单元

    第一个写入者生效，之后的写入被忽略；get() 阻塞直到有值。
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._result: Any = None
        self._exception: Optional[BaseException] = None

    def set_result(self, result: Any) -> bool:
        """写入结果，返回是否被接受"""
        with self._lock:
            if self._event.is_set():
                return False
            self._result = result
            self._event.set()
            return True

    def set_exception(self, exception: BaseException) -> bool:
        """写入异常，返回是否被接受"""
        with self._lock:
            if self._event.is_set():
                return False
            self._exception = exception
            self._event.set()
            return True

    def get(self, timeout: Optional[float] = None) -> Any:
        """
        获取结果

        Args:
            timeout: 最长等待秒数，None 表示一直等待

        Returns:
            Any: 写入的结果

        Raises:
            写入的异常；等待超时则抛出 ProbeTimeoutError
        """
        if not self._event.wait(timeout):
            raise ProbeTimeoutError()
        if self._exception is not None:
            raise self._exception
        return self._result


class TimeoutSupervisor:
    """在后台线程中执行任务，与截止时间竞争，只消费先到达的结果"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def run(self, worker: Callable[[CancelContext], Any], context: CancelContext) -> Any:
        """
        执行任务

        Args:
            worker: 接收取消上下文的任务函数
            context: 已启动的取消上下文

        Returns:
            Any: 任务结果

        Raises:
            ProbeTimeoutError: 截止时间先于任务完成
            任务抛出的异常
        """
        cell = ResultCell()

        def on_cancel():
            if context.expired:
                cell.set_exception(ProbeTimeoutError())
            else:
                cell.set_exception(CheckCertNetError("command cancelled"))

        context.add_callback(on_cancel)

        def target():
            try:
                result = worker(context)
            except BaseException as e:
                if not cell.set_exception(e):
                    self.logger.debug(f"任务在截止时间之后失败，结果被丢弃: {type(e).__name__}: {str(e)}")
                return
            if not cell.set_result(result):
                self.logger.debug("任务在截止时间之后完成，结果被丢弃")

        thread = threading.Thread(target=target, name="check-cert-net-worker", daemon=True)
        thread.start()

        try:
            return cell.get()
        except ProbeTimeoutError:
            self.logger.warning(f"命令执行超时（{context.timeout}秒）")
            raise
        finally:
            context.remove_callback(on_cancel)
