import asyncio
import shlex


SHOW_COMMAND = False


def cmd_args_to_str(cmd_args):
    return " ".join(shlex.quote(str(arg)) for arg in cmd_args)


def _decode(data):
    return (data or b"").decode("utf-8", errors="replace")


async def run_process(command, args=None, cwd=None, env=None):
    if args is None:
        args = []

    cmd = [str(command)] + [str(arg) for arg in args]
    if SHOW_COMMAND:
        print("Execute -> ", cmd_args_to_str(cmd), flush=True)

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return proc.returncode, _decode(stdout), _decode(stderr)


async def run_shell(command_line, cwd=None, env=None):
    if SHOW_COMMAND:
        print("Execute -> ", command_line, flush=True)

    proc = await asyncio.create_subprocess_shell(
        command_line,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return proc.returncode, _decode(stdout), _decode(stderr)
