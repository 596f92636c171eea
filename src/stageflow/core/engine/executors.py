# src/stageflow/core/engine/executors.py
"""
Executores de comandos do Stageflow.

Um executor é um ambiente capaz de rodar os comandos de um job: o shell do
host ou um container efêmero criado a partir de uma imagem. Cada executor
anuncia um conjunto de tags; o resolvedor de ambiente escolhe um executor
cujas tags contenham todas as tags do job.

Componentes principais:
    - Executor        → protocolo comum
    - ShellExecutor   → `subprocess` no host, sem suporte a imagens
    - DockerExecutor  → `docker run --rm` com o projeto montado em /builds/project
    - build_executors → fábrica a partir dos Settings

Invariantes:
    - `run` nunca levanta por exit code não zero: o código é retornado
    - A saída (stdout + stderr) de cada comando é anexada ao log do job
    - `prepare` levanta `EnvironmentResolutionError` se o ambiente não existe

Limites explícitos:
    - Sem retry de comandos ou de pull
    - Sem timeout por comando
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from stageflow.core.config.settings import ExecutorConfig, Settings
from stageflow.core.exceptions import EnvironmentResolutionError


CONTAINER_PROJECT_DIR = "/builds/project"
DEFAULT_SHELL: Tuple[str, ...] = ("/bin/sh", "-c")


@runtime_checkable
class Executor(Protocol):
    name: str
    tags: Tuple[str, ...]
    supports_images: bool

    def prepare(self, image: Optional[str]) -> None:
        ...

    def run(
        self,
        command: str,
        *,
        image: Optional[str],
        workdir: Path,
        env: Dict[str, str],
        log_path: Path,
    ) -> int:
        ...


def _append_header(log, command: str) -> None:
    log.write(f"$ {command}\n".encode("utf-8"))
    log.flush()


class ShellExecutor:
    """Executa comandos no shell do host, com o diretório de trabalho do job como cwd."""

    supports_images = False

    def __init__(self, name: str, *, tags: Sequence[str] = (), shell: Sequence[str] = DEFAULT_SHELL):
        self.name = name
        self.tags = tuple(tags)
        self.shell = tuple(shell)

    def prepare(self, image: Optional[str]) -> None:
        if image is not None:
            raise EnvironmentResolutionError(
                message=f"Executor '{self.name}' não suporta imagens de container",
                details={"executor": self.name, "image": image},
            )

    def run(
        self,
        command: str,
        *,
        image: Optional[str],
        workdir: Path,
        env: Dict[str, str],
        log_path: Path,
    ) -> int:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "ab") as log:
            _append_header(log, command)
            result = subprocess.run(
                [*self.shell, command],
                cwd=str(workdir),
                env={**os.environ, **env},
                stdout=log,
                stderr=subprocess.STDOUT,
            )
        return result.returncode

    def __repr__(self) -> str:
        return f"ShellExecutor(name={self.name!r}, tags={self.tags!r})"


class DockerExecutor:
    """
    Executa cada comando em um container efêmero.

    O diretório de trabalho do job é montado em `/builds/project`, de modo que
    artefatos e caches materializados no host são visíveis ao container e
    vice-versa.
    """

    supports_images = True

    def __init__(
        self,
        name: str,
        *,
        tags: Sequence[str] = (),
        docker_bin: str = "docker",
        pull_missing: bool = True,
    ):
        self.name = name
        self.tags = tuple(tags)
        self.docker_bin = docker_bin
        self.pull_missing = pull_missing

    def _binary(self) -> str:
        path = shutil.which(self.docker_bin)
        if path is None:
            raise EnvironmentResolutionError(
                message=f"Binário do docker não encontrado: {self.docker_bin}",
                details={"executor": self.name, "docker_bin": self.docker_bin},
                hint="Instale o docker ou ajuste `docker_bin` na configuração do executor.",
            )
        return path

    def prepare(self, image: Optional[str]) -> None:
        if not image:
            raise EnvironmentResolutionError(
                message=f"Executor '{self.name}' exige uma imagem",
                details={"executor": self.name},
            )
        binary = self._binary()
        inspect = subprocess.run(
            [binary, "image", "inspect", image],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        if inspect.returncode == 0:
            return
        if not self.pull_missing:
            raise EnvironmentResolutionError(
                message=f"Imagem não encontrada localmente: {image}",
                details={"executor": self.name, "image": image},
            )
        pull = subprocess.run(
            [binary, "pull", image],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        if pull.returncode != 0:
            raise EnvironmentResolutionError(
                message=f"Falha ao obter a imagem {image}",
                details={
                    "executor": self.name,
                    "image": image,
                    "stderr": pull.stderr.decode("utf-8", errors="replace").strip(),
                },
            )

    def command_line(self, command: str, *, image: str, workdir: Path, env: Dict[str, str]) -> List[str]:
        env = {**env, "CI_PROJECT_DIR": CONTAINER_PROJECT_DIR}
        argv = [
            self.docker_bin,
            "run",
            "--rm",
            "-v",
            f"{Path(workdir).resolve()}:{CONTAINER_PROJECT_DIR}",
            "-w",
            CONTAINER_PROJECT_DIR,
        ]
        for key in sorted(env):
            argv.extend(["-e", f"{key}={env[key]}"])
        argv.extend([image, "sh", "-c", command])
        return argv

    def run(
        self,
        command: str,
        *,
        image: Optional[str],
        workdir: Path,
        env: Dict[str, str],
        log_path: Path,
    ) -> int:
        if not image:
            raise EnvironmentResolutionError(
                message=f"Executor '{self.name}' exige uma imagem",
                details={"executor": self.name},
            )
        argv = self.command_line(command, image=image, workdir=workdir, env=env)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "ab") as log:
            _append_header(log, command)
            result = subprocess.run(argv, stdout=log, stderr=subprocess.STDOUT)
        return result.returncode

    def __repr__(self) -> str:
        return f"DockerExecutor(name={self.name!r}, tags={self.tags!r})"


def executor_from_config(config: ExecutorConfig) -> Executor:
    if config.kind == "shell":
        return ShellExecutor(
            config.name,
            tags=config.tags,
            shell=tuple(config.options.get("shell", DEFAULT_SHELL)),
        )
    if config.kind == "docker":
        return DockerExecutor(
            config.name,
            tags=config.tags,
            docker_bin=str(config.options.get("docker_bin", "docker")),
            pull_missing=bool(config.options.get("pull_missing", True)),
        )
    raise ValueError(f"Unsupported executor kind: {config.kind}")


def build_executors(settings: Settings) -> List[Executor]:
    """Instancia os executores declarados, na ordem da configuração."""
    return [executor_from_config(cfg) for cfg in settings.executors]
