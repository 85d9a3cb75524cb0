"""
错误处理服务测试
"""
import pytest
from unittest.mock import patch

from check_cert_net.models import Status
from check_cert_net.services.error_handler import (
    CheckErrorHandler,
    ConfigurationError,
    ParseError,
    PipelineError,
    ProbeTimeoutError,
    VerificationError,
    escape_output
)


class TestEscapeOutput:
    """输出转义测试类"""

    def test_trims_trailing_newlines(self):
        assert escape_output("unable to load certificate\n\n") == "unable to load certificate"

    def test_escapes_line_breaks(self):
        assert escape_output("a\r\nb\rc\nd") == "a\\r\\nb\\rc\\nd"

    def test_empty(self):
        assert escape_output("") == ""


class TestExceptions:
    """异常类型测试类"""

    def test_pipeline_error_with_stderr(self):
        """测试附加标准错误"""
        error = PipelineError("stage 1 (openssl) exited with status 1", stage=1,
                              argv=["openssl", "s_client"], returncode=1)

        combined = error.with_stderr("connect:errno=111\nconnect: Connection refused\n")

        assert str(combined) == (
            "stage 1 (openssl) exited with status 1:connect:errno=111\\nconnect: Connection refused"
        )
        assert combined.stage == 1
        assert combined.argv == ("openssl", "s_client")
        assert combined.returncode == 1
        assert combined.stderr.startswith("connect:errno=111")

    def test_timeout_message(self):
        assert str(ProbeTimeoutError()) == "command timeout"

    def test_verification_message(self):
        error = VerificationError("www.example.org", ["example.com", "*.example.com"])

        assert str(error) == "servername:www.example.org is not included in example.com,*.example.com"
        assert error.subjects == ["example.com", "*.example.com"]


class TestCheckErrorHandler:
    """检查错误处理器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.handler = CheckErrorHandler()

    @pytest.mark.parametrize("error", [
        ConfigurationError("cannot use --rsa and --ecdsa at the same time"),
        PipelineError("stage 2 (openssl) exited with status 1"),
        ProbeTimeoutError(),
        ParseError("could not find notAfter in result"),
        VerificationError("a.example.com", ["b.example.com"]),
    ])
    def test_to_verdict_is_critical(self, error):
        """测试所有错误都映射为 CRITICAL"""
        verdict = self.handler.to_verdict(error)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == str(error)

    def test_to_verdict_unexpected_error(self):
        """测试未预期的异常"""
        verdict = self.handler.to_verdict(RuntimeError("boom"))

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "RuntimeError: boom"

    def test_handle_check_error(self):
        """测试错误处理结果"""
        error_info = self.handler.handle_check_error("example.com", ProbeTimeoutError())

        assert error_info['host'] == "example.com"
        assert error_info['error_type'] == "ProbeTimeoutError"
        assert error_info['error_kind'] == "timeout"
        assert error_info['error_message'] == "command timeout"
        assert "--timeout" in error_info['suggested_action']
        assert 'timestamp' in error_info

    def test_handle_check_error_unexpected(self):
        """测试未预期的异常的错误处理结果"""
        error_info = self.handler.handle_check_error("example.com", KeyError("x"))

        assert error_info['error_kind'] == "unexpected"

    def test_handle_check_error_does_not_log_error(self):
        """测试错误处理器不重复输出错误日志"""
        with patch.object(self.handler, 'logger') as mock_logger:
            self.handler.handle_check_error("example.com", ProbeTimeoutError())
            self.handler.handle_check_error("example.com", KeyError("x"))

        mock_logger.warning.assert_not_called()
        mock_logger.error.assert_not_called()

    def test_suggested_action_missing_binary(self):
        """测试程序无法启动的建议"""
        error = PipelineError("stage 1 (openssl) failed to start", stage=1)

        assert "openssl" in self.handler._get_suggested_action(error)
