"""Container settings for running functions of each runtime locally."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum


class Runtime(str, Enum):
    NODEJS14 = "nodejs14"
    NODEJS16 = "nodejs16"
    PYTHON39 = "python39"


class SourceType(str, Enum):
    INLINE = "inline"
    GIT = "git"


class MountType(str, Enum):
    BIND = "bind"
    VOLUME = "volume"


@dataclass(frozen=True)
class Mount:
    type: MountType
    target: str
    source: str = ""


SERVER_PORT = "8080"
FUNCTION_MOUNT_PATH = "/usr/src/app/function"
KUBELESS_PATH = "/kubeless"
KUBELESS_TMP_PATH = "/tmp/kubeless"
CONTAINER_USER = "root"

NODEJS_PATH = "NODE_PATH=$(KUBELESS_INSTALL_VOLUME)/node_modules"
NODEJS_DEBUG_ENDPOINT = "9229"

PYTHON39_PATH = (
    "PYTHONPATH=$(KUBELESS_INSTALL_VOLUME)/lib.python3.9/site-packages:$(KUBELESS_INSTALL_VOLUME)"
)
PYTHON39_HOT_DEPLOY = "CHERRYPY_RELOADED=true"
PYTHON39_UNBUFFERED = "PYTHONUNBUFFERED=TRUE"
PYTHON39_DEBUG_ENDPOINT = "5678"

_NODEJS_RUNTIMES = (Runtime.NODEJS14, Runtime.NODEJS16)

_KUBELESS_NPM_INSTALL = "npm install --production --prefix=$KUBELESS_INSTALL_VOLUME"
_PIP_INSTALL = "pip install -r $KUBELESS_INSTALL_VOLUME/requirements.txt"


def _runtime_value(runtime: Runtime | str) -> str:
    return runtime.value if isinstance(runtime, Runtime) else str(runtime)


def container_envs(runtime: Runtime | str, hot_deploy: bool = False) -> list[str]:
    """Environment variables for a function container."""
    envs = []
    if runtime != Runtime.NODEJS16:
        envs.append(f"KUBELESS_INSTALL_VOLUME={KUBELESS_PATH}")
    envs += [
        f"FUNC_RUNTIME={_runtime_value(runtime)}",
        "FUNC_HANDLER=main",
        "MOD_NAME=handler",
        f"FUNC_PORT={SERVER_PORT}",
        "SERVICE_NAMESPACE=default",
    ]
    return envs + _runtime_envs(runtime, hot_deploy)


def _runtime_envs(runtime: Runtime | str, hot_deploy: bool) -> list[str]:
    if runtime in _NODEJS_RUNTIMES:
        return [NODEJS_PATH, "HOME=/home/node"]
    if runtime == Runtime.PYTHON39:
        envs = [PYTHON39_PATH, PYTHON39_UNBUFFERED]
        if hot_deploy:
            envs.append(PYTHON39_HOT_DEPLOY)
        return envs
    return [NODEJS_PATH]


def runtime_debug_port(runtime: Runtime | str) -> str:
    """The port a debugger listens on inside the container."""
    if runtime == Runtime.PYTHON39:
        return PYTHON39_DEBUG_ENDPOINT
    return NODEJS_DEBUG_ENDPOINT


def container_commands(runtime: Runtime | str, debug: bool = False, hot_deploy: bool = False) -> list[str]:
    """Shell commands that install dependencies and start the function server."""
    if runtime == Runtime.NODEJS14:
        if hot_deploy and debug:
            run = "npx nodemon --watch /kubeless/*.js --inspect=0.0.0.0 --exitcrash kubeless.js "
        elif hot_deploy:
            run = "npx nodemon --watch /kubeless/*.js /kubeless_rt/kubeless.js"
        elif debug:
            run = "node --inspect=0.0.0.0 kubeless.js "
        else:
            run = "node kubeless.js"
        return [_KUBELESS_NPM_INSTALL, run]
    if runtime == Runtime.NODEJS16:
        if hot_deploy and debug:
            run = "npx nodemon --watch /usr/src/app/function/*.js --inspect=0.0.0.0 --exitcrash server.js"
        elif hot_deploy:
            run = "npx nodemon --watch /usr/src/app/function/*.js /usr/src/app/server.js"
        elif debug:
            run = "node --inspect=0.0.0.0 server.js"
        else:
            run = "node server.js"
        return ["npm install --production", run]
    if runtime == Runtime.PYTHON39:
        if debug:
            return [
                _PIP_INSTALL,
                "pip install debugpy",
                "python -m debugpy --listen 0.0.0.0:5678 kubeless.py",
            ]
        return [_PIP_INSTALL, "python kubeless.py"]
    if hot_deploy:
        return [_KUBELESS_NPM_INSTALL, "npx nodemon --watch /kubeless/*.js /kubeless_rt/kubeless.js"]
    return [_KUBELESS_NPM_INSTALL, "node kubeless.js"]


def _source_mount_point(runtime: Runtime | str) -> str:
    return FUNCTION_MOUNT_PATH if runtime == Runtime.NODEJS16 else KUBELESS_PATH


def get_mounts(runtime: Runtime | str, source_type: SourceType | str, work_dir: str) -> list[Mount]:
    """Mounts that make the function sources visible in the container."""
    mount_point = _source_mount_point(runtime)
    if source_type == SourceType.INLINE:
        return [
            Mount(type=MountType.BIND, source=work_dir, target=KUBELESS_TMP_PATH),
            Mount(type=MountType.VOLUME, target=mount_point),
        ]
    return [Mount(type=MountType.BIND, source=work_dir, target=mount_point)]


def _join(*parts: str) -> str:
    return posixpath.normpath(posixpath.join(*parts))


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return posixpath.basename(stripped)


def move_inline_command(runtime: Runtime | str, source_path: str, deps_path: str) -> list[str]:
    """Commands linking inline sources from the temporary mount into place."""
    mount_point = _source_mount_point(runtime)
    return [
        f"ln -s -f {_join(KUBELESS_TMP_PATH, path)} {_join(mount_point, _base(path))}"
        for path in (source_path, deps_path)
    ]


def container_image(runtime: Runtime | str) -> str:
    """The image that runs functions of the runtime."""
    if runtime == Runtime.NODEJS16:
        return "eu.gcr.io/kyma-project/function-runtime-nodejs16:e1491c46"
    if runtime == Runtime.PYTHON39:
        return "eu.gcr.io/kyma-project/function-runtime-python39:e1491c46"
    return "eu.gcr.io/kyma-project/function-runtime-nodejs14:e1491c46"