"""
证书探测命令构建服务
"""
import logging
from typing import List

from ..models import CommandSpec, ExtractMode, ProbeConfig
from .error_handler import ConfigurationError


# s_client 在标准输入读到 QUIT 后结束会话
TRIGGER_STAGE = ("echo", "QUIT")

RSA_CIPHER = "aRSA"
ECDSA_CIPHER = "aECDSA"


class CertificateProbeBuilder:
    """构建 echo | openssl s_client | openssl x509 三阶段命令"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def build(self, config: ProbeConfig) -> CommandSpec:
        """
        根据探测配置构建管道命令

        Args:
            config: 探测配置

        Returns:
            CommandSpec: 三阶段命令

        Raises:
            ConfigurationError: 同时指定了 RSA 和 ECDSA
        """
        if config.prefer_rsa and config.prefer_ecdsa:
            raise ConfigurationError("cannot use --rsa and --ecdsa at the same time")

        spec = CommandSpec(stages=(
            TRIGGER_STAGE,
            tuple(self.build_client_stage(config)),
            tuple(self.build_extract_stage(config)),
        ))

        self.logger.debug(f"构建探测命令: {spec}")
        return spec

    def build_client_stage(self, config: ProbeConfig) -> List[str]:
        """构建 s_client 阶段"""
        command = [config.openssl_path, "s_client"]
        if config.server_name:
            command.extend(["-servername", config.server_name])
        command.extend(["-connect", config.target])
        if config.prefer_rsa:
            command.extend(["-cipher", RSA_CIPHER])
        elif config.prefer_ecdsa:
            command.extend(["-cipher", ECDSA_CIPHER])
        return command

    def build_extract_stage(self, config: ProbeConfig) -> List[str]:
        """构建 x509 字段提取阶段"""
        if config.extract_mode is ExtractMode.DATES:
            return [config.openssl_path, "x509", "-noout", "-dates"]
        return [config.openssl_path, "x509", "-noout", "-text"]
