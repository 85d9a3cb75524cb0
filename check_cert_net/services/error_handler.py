"""
错误处理服务
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..models import StatusVerdict


class CheckCertNetError(Exception):
    """证书检查错误基类"""
    error_kind = "check"


class ConfigurationError(CheckCertNetError):
    """配置错误，在启动任何子进程之前抛出"""
    error_kind = "configuration"


class PipelineError(CheckCertNetError):
    """管道某个阶段启动失败或以非零状态退出"""
    error_kind = "pipeline"

    def __init__(self, message: str, stage: Optional[int] = None,
                 argv: Optional[Sequence[str]] = None, returncode: Optional[int] = None,
                 stderr: str = ""):
        super().__init__(message)
        self.stage = stage
        self.argv = tuple(argv) if argv else ()
        self.returncode = returncode
        self.stderr = stderr

    def with_stderr(self, stderr: str) -> "PipelineError":
        """返回附加了错误输出的新异常，消息格式为 <error>:<stderr>"""
        return PipelineError(
            f"{self}:{escape_output(stderr)}",
            stage=self.stage,
            argv=self.argv,
            returncode=self.returncode,
            stderr=stderr
        )


class ProbeTimeoutError(CheckCertNetError):
    """命令执行超时"""
    error_kind = "timeout"

    def __init__(self, message: str = "command timeout"):
        super().__init__(message)


class ParseError(CheckCertNetError):
    """证书输出解析失败"""
    error_kind = "parse"

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.text = text


class VerificationError(CheckCertNetError):
    """servername 不在证书主题名称中"""
    error_kind = "verification"

    def __init__(self, server_name: str, subjects: List[str]):
        super().__init__(f"servername:{server_name} is not included in {','.join(subjects)}")
        self.server_name = server_name
        self.subjects = list(subjects)


def escape_output(text: str) -> str:
    """
    转义命令输出中的换行符，便于在单行消息中显示

    Args:
        text: 原始输出

    Returns:
        str: 去掉末尾换行并转义 \\r\\n、\\r、\\n 后的文本
    """
    out = text.rstrip("\n")
    return out.replace("\r\n", "\\r\\n").replace("\r", "\\r").replace("\n", "\\n")


class CheckErrorHandler:
    """检查错误处理器，将任何失败映射为 CRITICAL 结论"""

    def __init__(self):
        """初始化检查错误处理器"""
        self.logger = logging.getLogger(__name__)

    def to_verdict(self, error: Exception) -> StatusVerdict:
        """
        将异常转换为检查结论

        Args:
            error: 异常对象

        Returns:
            StatusVerdict: CRITICAL 结论，消息为异常描述
        """
        message = str(error)
        if not isinstance(error, CheckCertNetError):
            # 非预期的异常同样视为 CRITICAL，带上类型名便于排查
            message = f"{type(error).__name__}: {message}"
        return StatusVerdict.critical(message)

    def handle_check_error(self, host: str, error: Exception) -> Dict[str, Any]:
        """
        处理检查错误

        Args:
            host: 目标主机
            error: 异常对象

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'host': host,
            'error_type': type(error).__name__,
            'error_kind': getattr(error, 'error_kind', 'unexpected'),
            'error_message': str(error),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(error)
        }

        # 错误由日志服务统一记录，这里只补充建议
        self.logger.debug(f"主机 {host} 错误类别: {error_info['error_kind']}, 建议: {error_info['suggested_action']}")

        return error_info

    def _get_suggested_action(self, error: Exception) -> str:
        """
        获取错误的建议处理方案

        Args:
            error: 异常对象

        Returns:
            str: 建议的处理方案
        """
        if isinstance(error, ConfigurationError):
            return "检查命令行参数，--rsa 与 --ecdsa 不能同时使用"
        elif isinstance(error, ProbeTimeoutError):
            return "检查网络连接，考虑增加 --timeout"
        elif isinstance(error, PipelineError):
            if error.returncode is None:
                return "检查 openssl 是否已安装并在 PATH 中"
            return "检查目标主机端口是否可达，TLS 握手是否成功"
        elif isinstance(error, ParseError):
            return "检查 openssl 输出格式，确认服务器返回了证书"
        elif isinstance(error, VerificationError):
            return "证书主题名称与 servername 不匹配，检查证书部署"
        else:
            return "检查运行环境和服务器状态"
