"""
命令行入口
"""
import argparse
import platform
import sys
from typing import List, Optional

from .models import ExtractMode, StatusVerdict
from .lambda_handler import CertificateProbeMonitor
from .services.config_validator import parse_duration
from .services.error_handler import ConfigurationError
from .version import CHECK_NAME, VERSION


class ArgumentParser(argparse.ArgumentParser):
    """参数错误时以状态码1退出（2 在监控约定中表示 CRITICAL）"""

    def error(self, message):
        self.exit(1, f"{self.prog}: error: {message}\n")


def duration(value: str) -> float:
    """argparse 类型：解析时长，格式无效时作为参数错误处理"""
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog=CHECK_NAME,
        description="Check the expiry date of a remote TLS server certificate"
    )
    parser.add_argument("-H", "--host", help="Hostname (default: localhost)")
    parser.add_argument("-p", "--port", help="Port (default: 443)")
    parser.add_argument("--servername", dest="server_name", help="servername in ClientHello")
    parser.add_argument("--verify-servername", dest="verify_server_name", action="store_true",
                        help="verify servername")
    parser.add_argument("--timeout", type=duration, help="Timeout to connect to server (default: 5s)")
    parser.add_argument("--rsa", dest="prefer_rsa", action="store_true", help="Preferred aRSA cipher to use")
    parser.add_argument("--ecdsa", dest="prefer_ecdsa", action="store_true", help="Preferred aECDSA cipher to use")
    parser.add_argument("-c", "--critical", dest="critical_days", type=int,
                        help="The critical threshold in days before expiry (default: 14)")
    parser.add_argument("-w", "--warning", dest="warning_days", type=int,
                        help="The threshold in days before expiry (default: 30)")
    parser.add_argument("--dates-only", dest="extract_mode", action="store_const", const=ExtractMode.DATES.value,
                        help="Only read the validity dates of the certificate")
    parser.add_argument("--merge-output", dest="merge_output", action="store_true",
                        help="Collect stdout and stderr of the pipeline into one buffer")
    parser.add_argument("--sns-topic-arn", help="Publish WARNING/CRITICAL results to this SNS topic")
    parser.add_argument("-v", "--version", action="store_true", help="Show version")
    return parser


def version_text(prog: str) -> str:
    return f"{prog} {VERSION}\nCompiler: {platform.python_implementation()} {platform.python_version()}\n"


def main(argv: Optional[List[str]] = None) -> int:
    """
    命令行入口

    Args:
        argv: 命令行参数，默认为 sys.argv[1:]

    Returns:
        int: 退出码 0=OK 1=WARNING 2=CRITICAL
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        sys.stdout.write(version_text(sys.argv[0] if argv is None else CHECK_NAME))
        return 0

    values = vars(args)
    monitor = CertificateProbeMonitor(topic_arn=values.pop('sns_topic_arn'))

    try:
        config = monitor.build_config(values)
    except ConfigurationError as e:
        verdict = StatusVerdict.critical(str(e))
        monitor.notify(str(values.get('host') or ''), verdict)
    else:
        verdict = monitor.execute(config)

    print(verdict.format(CHECK_NAME))
    return verdict.exit_code


if __name__ == "__main__":
    sys.exit(main())
