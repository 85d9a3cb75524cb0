"""
证书检查器测试
"""
import threading

import pytest
from unittest.mock import patch, MagicMock
from datetime import datetime, timezone

from check_cert_net.interfaces import CertificateParserInterface, PipelineRunnerInterface
from check_cert_net.models import CertificateInfo, ExtractMode, PipelineResult, ProbeConfig, Status
from check_cert_net.services.cert_checker import CertificateChecker
from check_cert_net.services.error_handler import ConfigurationError, PipelineError, ProbeTimeoutError
from check_cert_net.services.expiry_evaluator import ExpiryEvaluator
from check_cert_net.services.pipeline_runner import SubprocessPipelineRunner


NOW = datetime(2030, 3, 31, 0, 0, 0, tzinfo=timezone.utc)

CERT_TEXT = (
    "        Validity\n"
    "            Not Before: Mar  3 00:00:00 2030 GMT\n"
    "            Not After : Jun  1 00:00:00 2030 GMT\n"
    "        Subject: CN=www.example.com\n"
    "            X509v3 Subject Alternative Name: \n"
    "                DNS:www.example.com, DNS:example.com\n"
)


def wait_for_cancel(context, timeout=5):
    cancelled = threading.Event()
    context.add_callback(cancelled.set)
    return cancelled.wait(timeout)


class TestCertificateChecker:
    """证书检查器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.runner = MagicMock(spec=SubprocessPipelineRunner)
        self.logger_service = MagicMock()
        self.checker = CertificateChecker(
            runner=self.runner,
            evaluator=ExpiryEvaluator(clock=lambda: NOW),
            logger_service=self.logger_service
        )
        self.config = ProbeConfig(host="example.com", server_name="www.example.com")

    def test_check_ok(self):
        """测试证书正常"""
        self.runner.execute.return_value = PipelineResult(stdout=CERT_TEXT.encode())

        verdict = self.checker.check(self.config)

        assert verdict.status is Status.OK
        assert verdict.message == "Expiration date: 2030-06-01, 62 days remaining"
        self.logger_service.log_verdict.assert_called_once_with("example.com", verdict)
        self.logger_service.log_check_end.assert_called_once()

    def test_check_passes_command_and_merge_flag(self):
        """测试传给执行器的命令和缓冲区设置"""
        self.runner.execute.return_value = PipelineResult(stdout=CERT_TEXT.encode())
        config = ProbeConfig(host="example.com", merge_output=True)

        self.checker.check(config)

        spec, context = self.runner.execute.call_args.args
        assert spec.stages[1] == ("openssl", "s_client", "-connect", "example.com:443")
        assert self.runner.execute.call_args.kwargs == {'merge_output': True}
        assert context.cancelled is True

    def test_check_verify_server_name(self):
        """测试名称校验失败"""
        self.runner.execute.return_value = PipelineResult(stdout=CERT_TEXT.encode())
        config = ProbeConfig(host="example.com", server_name="api.example.com", verify_server_name=True)

        verdict = self.checker.check(config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "servername:api.example.com is not included in www.example.com,example.com"

    def test_check_dates_mode(self):
        """测试只提取有效期"""
        self.runner.execute.return_value = PipelineResult(stdout=b"notAfter=Apr  5 00:00:00 2030 GMT\n")
        config = ProbeConfig(host="example.com", extract_mode=ExtractMode.DATES)

        verdict = self.checker.check(config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "Expiration date: 2030-04-05, 5 days remaining"

    def test_check_pipeline_error(self):
        """测试管道失败时附带标准错误"""
        self.runner.execute.return_value = PipelineResult(
            stderr=b"unable to load certificate\r\n140:error:0909006C:PEM routines\n",
            error=PipelineError("stage 2 (openssl) exited with status 1", stage=2, returncode=1)
        )

        verdict = self.checker.check(self.config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == (
            "stage 2 (openssl) exited with status 1:"
            "unable to load certificate\\r\\n140:error:0909006C:PEM routines"
        )
        self.logger_service.log_error.assert_called_once()

    def test_check_parse_error(self):
        """测试输出中没有证书"""
        self.runner.execute.return_value = PipelineResult(stdout=b"")

        verdict = self.checker.check(self.config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "could not find notAfter in result"

    def test_check_timeout(self):
        """测试超时"""
        def slow_execute(spec, context, merge_output=False):
            wait_for_cancel(context)
            return PipelineResult(stdout=CERT_TEXT.encode())

        self.runner.execute.side_effect = slow_execute
        config = ProbeConfig(host="example.com", timeout=0.2)

        verdict = self.checker.check(config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "command timeout"

    def test_check_unexpected_error(self):
        """测试未预期的异常"""
        self.runner.execute.side_effect = RuntimeError("boom")

        verdict = self.checker.check(self.config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "RuntimeError: boom"

    def test_check_error_recorded_once(self):
        """测试失败时错误详情只通过日志服务记录一次"""
        self.runner.execute.return_value = PipelineResult(stdout=b"")

        with patch.object(self.checker.error_handler, 'logger') as handler_logger:
            self.checker.check(self.config)

        self.logger_service.log_error.assert_called_once()
        host, error, error_info = self.logger_service.log_error.call_args.args
        assert host == "example.com"
        assert error_info['error_kind'] == "parse"
        assert error_info['suggested_action']
        handler_logger.warning.assert_not_called()
        handler_logger.error.assert_not_called()

    def test_conflicting_ciphers_start_no_process(self):
        """测试配置冲突时不启动子进程"""
        config = ProbeConfig(host="example.com", prefer_rsa=True, prefer_ecdsa=True)

        with pytest.raises(ConfigurationError):
            self.checker.get_certificate_info(config)

        self.runner.execute.assert_not_called()

    @patch('check_cert_net.services.pipeline_runner.subprocess.Popen')
    def test_conflicting_ciphers_with_real_runner(self, mock_popen):
        """测试配置冲突时真实执行器也不会启动进程"""
        checker = CertificateChecker(logger_service=MagicMock())
        config = ProbeConfig(host="example.com", prefer_rsa=True, prefer_ecdsa=True)

        verdict = checker.check(config)

        assert verdict.status is Status.CRITICAL
        assert verdict.message == "cannot use --rsa and --ecdsa at the same time"
        mock_popen.assert_not_called()

    def test_get_certificate_info(self):
        """测试获取证书信息"""
        self.runner.execute.return_value = PipelineResult(stdout=CERT_TEXT.encode())

        cert_info = self.checker.get_certificate_info(self.config)

        assert isinstance(cert_info, CertificateInfo)
        assert cert_info.subjects == ["www.example.com", "example.com"]

    def test_get_certificate_info_timeout_raises(self):
        """测试超时异常"""
        self.runner.execute.side_effect = lambda spec, context, merge_output=False: wait_for_cancel(context)

        with pytest.raises(ProbeTimeoutError):
            self.checker.get_certificate_info(ProbeConfig(timeout=0.1))


class StaticRunner(PipelineRunnerInterface):
    """返回固定输出的管道执行器"""

    def __init__(self, stdout: bytes):
        self.stdout = stdout

    def run(self, spec, stdout, stderr, context):
        stdout.write(self.stdout)

    def execute(self, spec, context, merge_output=False):
        return PipelineResult(stdout=self.stdout)


class TestCheckerCollaborators:
    """检查器协作接口测试类"""

    def test_interfaces_declare_called_methods(self):
        """测试接口声明了检查器调用的方法"""
        assert {'run', 'execute'} <= PipelineRunnerInterface.__abstractmethods__
        assert {'parse', 'parse_dates', 'parse_text'} <= CertificateParserInterface.__abstractmethods__

    def test_runner_without_execute_is_rejected(self):
        """测试未实现 execute 的执行器无法实例化"""
        class RunOnlyRunner(PipelineRunnerInterface):
            def run(self, spec, stdout, stderr, context):
                pass

        with pytest.raises(TypeError):
            RunOnlyRunner()

    def test_check_with_custom_runner(self):
        """测试使用任意实现接口的执行器"""
        checker = CertificateChecker(
            runner=StaticRunner(CERT_TEXT.encode()),
            evaluator=ExpiryEvaluator(clock=lambda: NOW),
            logger_service=MagicMock()
        )

        verdict = checker.check(ProbeConfig(host="example.com"))

        assert verdict.status is Status.OK
        assert verdict.message == "Expiration date: 2030-06-01, 62 days remaining"
