"""
子进程管道执行服务
"""
import io
import logging
import subprocess
import threading
from typing import BinaryIO, List, Optional

from ..interfaces import PipelineRunnerInterface
from ..models import CommandSpec, PipelineResult
from .error_handler import PipelineError
from .timeout_supervisor import CancelContext


CHUNK_SIZE = 32 * 1024


class SynchronizedWriter:
    """加锁的写入器，多个阶段并发写同一个输出时逐次加锁"""

    def __init__(self, sink: BinaryIO, lock: threading.Lock):
        self.sink = sink
        self.lock = lock

    def write(self, data: bytes) -> int:
        with self.lock:
            return self.sink.write(data)


class SubprocessPipelineRunner(PipelineRunnerInterface):
    """
    子进程管道执行器

    每个阶段的标准输出通过 OS 管道连接到下一阶段的标准输入，
    所有阶段并发运行；各阶段的标准错误写入 stderr，
    只有最后一个阶段的标准输出写入 stdout。
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def run(self, spec: CommandSpec, stdout: BinaryIO, stderr: BinaryIO, context: CancelContext) -> None:
        """
        执行管道

        Args:
            spec: 管道命令
            stdout: 最后一个阶段标准输出的写入目标
            stderr: 所有阶段标准错误的写入目标（可与 stdout 相同）
            context: 取消上下文，取消时终止所有已启动的进程

        Raises:
            PipelineError: 某个阶段启动失败或以非零状态退出
        """
        lock = threading.Lock()
        out_writer = SynchronizedWriter(stdout, lock)
        err_writer = SynchronizedWriter(stderr, lock)

        processes: List[subprocess.Popen] = []
        err_pumps: List[threading.Thread] = []
        out_pump: Optional[threading.Thread] = None

        def kill_all():
            for process in processes:
                if process.poll() is None:
                    self.logger.debug(f"终止进程 pid={process.pid}: {' '.join(process.args)}")
                    process.kill()

        context.add_callback(kill_all)

        last = len(spec.stages) - 1
        for index, argv in enumerate(spec.stages):
            stdin = processes[index - 1].stdout if index > 0 else subprocess.DEVNULL
            try:
                process = subprocess.Popen(
                    list(argv),
                    stdin=stdin,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE
                )
            except OSError as e:
                raise PipelineError(
                    f"stage {index} ({argv[0]}) failed to start: {e}",
                    stage=index,
                    argv=argv
                ) from e

            if index > 0:
                # 父进程不再持有上一阶段的输出管道，下游退出时上游能收到 SIGPIPE
                processes[index - 1].stdout.close()

            processes.append(process)
            err_pumps.append(self._start_pump(process.stderr, err_writer, f"stderr-{index}"))
            if index == last:
                out_pump = self._start_pump(process.stdout, out_writer, f"stdout-{index}")

            if context.cancelled:
                kill_all()

        for index, process in enumerate(processes):
            returncode = process.wait()
            err_pumps[index].join()
            if index == last and out_pump is not None:
                out_pump.join()

            if returncode != 0:
                raise PipelineError(
                    f"stage {index} ({spec.stages[index][0]}) exited with status {returncode}",
                    stage=index,
                    argv=spec.stages[index],
                    returncode=returncode
                )

        context.remove_callback(kill_all)

    def execute(self, spec: CommandSpec, context: CancelContext, merge_output: bool = False) -> PipelineResult:
        """
        执行管道并收集结果

        Args:
            spec: 管道命令
            context: 取消上下文
            merge_output: 是否把标准输出和标准错误写入同一个缓冲区

        Returns:
            PipelineResult: 执行结果
        """
        out_buffer = io.BytesIO()
        err_buffer = out_buffer if merge_output else io.BytesIO()

        error = None
        try:
            self.run(spec, out_buffer, err_buffer, context)
        except PipelineError as e:
            error = e

        return PipelineResult(
            stdout=out_buffer.getvalue(),
            stderr=err_buffer.getvalue(),
            error=error,
            timed_out=context.expired
        )

    def _start_pump(self, stream: BinaryIO, writer: SynchronizedWriter, name: str) -> threading.Thread:
        thread = threading.Thread(target=self._pump, args=(stream, writer), name=f"pipe-{name}", daemon=True)
        thread.start()
        return thread

    def _pump(self, stream: BinaryIO, writer: SynchronizedWriter):
        try:
            while True:
                chunk = stream.read1(CHUNK_SIZE)
                if not chunk:
                    break
                writer.write(chunk)
        finally:
            stream.close()
