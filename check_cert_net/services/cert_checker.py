"""
证书检查服务
"""
import logging
from typing import Optional

from ..interfaces import CertificateCheckerInterface, CertificateParserInterface, PipelineRunnerInterface
from ..models import CertificateInfo, ProbeConfig, StatusVerdict
from .error_handler import CheckErrorHandler
from .expiry_evaluator import ExpiryEvaluator
from .logger import LoggerService
from .output_parser import CertificateOutputParser
from .pipeline_runner import SubprocessPipelineRunner
from .probe_builder import CertificateProbeBuilder
from .timeout_supervisor import CancelContext, TimeoutSupervisor


class CertificateChecker(CertificateCheckerInterface):
    """证书检查器：构建命令、执行管道、解析输出、评估过期"""

    def __init__(self,
                 builder: Optional[CertificateProbeBuilder] = None,
                 runner: Optional[PipelineRunnerInterface] = None,
                 parser: Optional[CertificateParserInterface] = None,
                 evaluator: Optional[ExpiryEvaluator] = None,
                 supervisor: Optional[TimeoutSupervisor] = None,
                 logger_service: Optional[LoggerService] = None):
        self.builder = builder or CertificateProbeBuilder()
        self.runner = runner or SubprocessPipelineRunner()
        self.parser = parser or CertificateOutputParser()
        self.evaluator = evaluator or ExpiryEvaluator()
        self.supervisor = supervisor or TimeoutSupervisor()
        self.logger_service = logger_service or LoggerService()
        self.error_handler = CheckErrorHandler()
        self.logger = logging.getLogger(__name__)

    def check(self, config: ProbeConfig) -> StatusVerdict:
        """
        检查证书

        Args:
            config: 探测配置

        Returns:
            StatusVerdict: 检查结论，任何失败都返回 CRITICAL
        """
        self.logger_service.log_check_start(config)
        try:
            cert_info = self.get_certificate_info(config)
            self.logger_service.log_certificate_info(config.host, cert_info)
            verdict = self.evaluator.evaluate(cert_info, config)

        except Exception as e:
            error_info = self.error_handler.handle_check_error(config.host, e)
            self.logger_service.log_error(config.host, e, error_info)
            verdict = self.error_handler.to_verdict(e)

        self.logger_service.log_verdict(config.host, verdict)
        self.logger_service.log_check_end()
        return verdict

    def get_certificate_info(self, config: ProbeConfig) -> CertificateInfo:
        """
        获取证书信息

        Args:
            config: 探测配置

        Returns:
            CertificateInfo: 证书信息

        Raises:
            ConfigurationError: 配置冲突，不会启动任何子进程
            PipelineError: 管道执行失败
            ProbeTimeoutError: 超时
            ParseError: 解析失败
        """
        spec = self.builder.build(config)
        self.logger_service.log_command(spec)

        def worker(context: CancelContext) -> CertificateInfo:
            result = self.runner.execute(spec, context, merge_output=config.merge_output)
            if result.error is not None:
                raise result.error.with_stderr(result.stderr_text)
            return self.parser.parse(result.stdout_text, config.extract_mode)

        with CancelContext(config.timeout) as context:
            return self.supervisor.run(worker, context)
