class ApkFactoryError(Exception):
    pass


class ManifestError(ApkFactoryError, ValueError):
    pass


class SkeletonError(ApkFactoryError):
    pass


class AssetFetchError(ApkFactoryError):
    def __init__(self, source, destination, reason):
        super().__init__(f"Failed to fetch {source} -> {destination}: {reason}")
        self.source = source
        self.destination = destination
        self.reason = reason


class ToolError(ApkFactoryError):
    def __init__(self, tool, returncode, stderr=""):
        detail = (stderr or "").strip().splitlines()
        if returncode is None:
            message = f"{tool} did not run"
        else:
            message = f"{tool} exited with code {returncode}"
        if detail:
            message += ": " + detail[-1]
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr


class KeygenError(ToolError):
    pass


class BuildToolError(ToolError):
    pass
