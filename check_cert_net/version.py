"""
版本号，构建时由 setuptools 读取
"""
VERSION = "0.0.6"

# 输出行和通知中使用的检查名称
CHECK_NAME = "check-cert-net"
