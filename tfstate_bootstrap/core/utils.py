"""Shell and environment utilities for the bootstrap deployment"""
import logging
import os
import subprocess
from typing import List, Optional, Tuple, Union


class ShellCommandError(RuntimeError):
    """A shell command could not be started or exited with a non-0 exit code"""

    def __init__(self, command: str, returncode: int, stdout: str = "", stderr: str = ""):
        super(ShellCommandError, self).__init__(f"Shellscript exited with non-0 exit code ({returncode}): {command}")
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _decode(stream: Union[bytes, str]) -> str:
    if isinstance(stream, bytes):
        try:
            return stream.decode("utf-8")
        except UnicodeDecodeError:
            return stream.decode("utf-8", errors="replace")
    return stream or ""


def run_shell_command(
    command_arg_list: Union[List, str],
    show_info: bool = False,
    shell: bool = False,
    log: Optional[logging.Logger] = None,
    poll: bool = True,
    log_errors: bool = True,
) -> Tuple[str, str]:
    """Runs shell command in host shell and returns output and error response

    Args:
        command_arg_list (Union[List, str]): List of command line args or str command to run (if shell=true)
        show_info (bool, optional): log with info level. Defaults to False.
        shell (bool, optional): run in shell mode (if arg_list is list). Defaults to False.
        log (Optional[logging.Logger], optional): Logger object to use. Defaults to None.
        poll (bool): whether to poll the process or return its stdout as a whole
        log_errors (bool): log stderr with error level on failure, debug otherwise. Defaults to True.

    Raises:
        ShellCommandError: If process could not be started or did not return with 0

    Returns:
        Tuple[str, str]: standard output and standard error as str
    """
    if not log:
        log = logging.getLogger("shell")

    cmd = command_arg_list if isinstance(command_arg_list, str) else " ".join(command_arg_list)
    log.debug(f"Running shell script: {cmd}")

    try:
        process = subprocess.Popen(command_arg_list, shell=shell, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        if log_errors:
            log.error(f"Could not start {cmd}: {e}")
        raise ShellCommandError(cmd, 127, "", str(e)) from e

    outs = []
    if poll:
        log_fn = log.info if show_info else log.debug
        for output in iter(process.stdout.readline, b""):
            try:
                s = output.decode("utf-8").strip()
            except UnicodeDecodeError:
                log.warning(f"Could not decode {output} with utf-8")
                continue
            outs.append(s)
            log_fn(s)

    stdout, stderr = process.communicate()
    stdout, stderr = _decode(stdout), _decode(stderr)

    if poll:
        stdout = "\n".join(outs)

    if process.returncode != 0:
        err_fn = log.error if log_errors else log.debug
        if stdout:
            log.warning(stdout)
        err_fn(stderr)
        raise ShellCommandError(cmd, process.returncode, stdout, stderr)

    return stdout, stderr


def get_environment_variable(name: str) -> str:
    """Get environment variable from the parent shell

    Args:
        name (str): name of the environment variable

    Raises:
        RuntimeError: If env var does not exist or empty

    Returns:
        str: the value of the environment variable
    """
    try:
        env_var = os.environ[name]
    except KeyError:
        raise RuntimeError(f"'{name}' env var does not exist.")
    if len(env_var) == 0:
        raise RuntimeError(f"'{name}' env var is empty.")
    return env_var


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger for command line usage

    Args:
        verbose (bool, optional): log debug messages (shell commands included). Defaults to False.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
