"""
Docker Containers API
"""

import io
import json
import logging
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Union

from .exceptions import APIError, ContainerNotFound
from .executor import Response, read_body
from .frames import DecodedLine, StreamType

logger = logging.getLogger(__name__)


class ExecResult(NamedTuple):
    exit_code: Optional[int]
    stdout: bytes
    stderr: bytes


class Container:
    """Docker Container object"""

    def __init__(self, attrs: Dict[str, Any], client):
        self.attrs = attrs
        self.client = client
        self.id = attrs.get('Id', '')
        self.short_id = self.id[:12] if self.id else ''
        self.name = attrs.get('Name', attrs.get('Names', [''])[0] if attrs.get('Names') else '').lstrip('/')

        # Inspect returns State as a dict, list returns it as a string
        state = attrs.get('State', {})
        if isinstance(state, dict):
            self.status = state.get('Status', 'unknown')
        else:
            self.status = attrs.get('Status', state if isinstance(state, str) else 'unknown')

        self.image = attrs.get('Image', attrs.get('ImageID', ''))
        self.labels = attrs.get('Labels', {})

    def __repr__(self):
        return f"<Container: {self.name or self.short_id}>"

    @property
    def tty(self) -> Optional[bool]:
        """TTY flag from inspect data, None when attrs came from a listing"""
        config = self.attrs.get('Config')
        if config is None:
            return None
        return bool(config.get('Tty', False))

    def start(self):
        """Start this container"""
        return self.client.start(self.id)

    def stop(self, timeout: int = 10):
        """Stop this container"""
        return self.client.stop(self.id, timeout=timeout)

    def kill(self, signal: str = 'SIGKILL'):
        """Kill this container"""
        return self.client.kill(self.id, signal=signal)

    def remove(self, force: bool = False, v: bool = False):
        """Remove this container"""
        return self.client.remove(self.id, force=force, v=v)

    def logs(self, **kwargs) -> List[DecodedLine]:
        """Get container logs"""
        return self.client.logs(self.id, tty=self.tty, **kwargs)

    def exec_run(self, cmd, **kwargs) -> ExecResult:
        """Execute command in container"""
        return self.client.exec_run(self.id, cmd, **kwargs)


class ContainerCollection:
    """Docker Containers collection"""

    def __init__(self, client):
        self.client = client

    @property
    def http(self):
        return self.client.http

    def _request(self, method: str, container_id: str, path: str, **kwargs) -> Any:
        with self.http.execute(method, path, **kwargs) as response:
            return self._read(response, container_id)

    @staticmethod
    def _read(response: Response, container_id: str) -> Any:
        try:
            return read_body(response)
        except APIError as e:
            if e.status_code == 404:
                raise ContainerNotFound(
                    f"Container not found: {container_id}",
                    response=response,
                    status_code=404
                ) from e
            raise

    def _open(self, container_id: str, path: str, **kwargs) -> Response:
        """Start a streaming request; the caller closes the response"""
        response = self.http.execute('GET', path, **kwargs)
        try:
            self._raise_for_status(response, container_id)
        except APIError:
            response.close()
            raise
        return response

    def list(self, all: bool = False, limit: Optional[int] = None,
             filters: Optional[Dict[str, Any]] = None) -> List[Container]:
        """
        List containers

        Args:
            all: Show all containers (including stopped)
            limit: Maximum number of containers to return
            filters: Filters to apply

        Returns:
            List of Container objects
        """
        params = {'all': all, 'limit': limit, 'filters': filters}
        with self.http.get('/containers/json', query_params=params) as response:
            containers_data = read_body(response)
        return [Container(c_data, self) for c_data in containers_data]

    def get(self, container_id: str, size: bool = False) -> Container:
        """
        Get container by ID or name

        Raises:
            ContainerNotFound: If container not found
        """
        container_data = self._request(
            'GET', container_id, f'/containers/{container_id}/json',
            query_params={'size': size}
        )
        return Container(container_data, self)

    def start(self, container_id: str):
        """Start container"""
        with self.http.post(f'/containers/{container_id}/start') as response:
            if response.status_code == 304:
                logger.warning(f"Container already started: {container_id}")
                return
            self._read(response, container_id)

    def stop(self, container_id: str, timeout: int = 10):
        """Stop container"""
        params = {'t': timeout}
        with self.http.post(f'/containers/{container_id}/stop', query_params=params) as response:
            if response.status_code == 304:
                logger.warning(f"Container already stopped: {container_id}")
                return
            self._read(response, container_id)

    def restart(self, container_id: str, timeout: int = 10):
        """Restart container"""
        params = {'t': timeout}
        return self._request('POST', container_id, f'/containers/{container_id}/restart',
                             query_params=params)

    def kill(self, container_id: str, signal: Optional[str] = None):
        """Kill container"""
        params = {'signal': signal}
        return self._request('POST', container_id, f'/containers/{container_id}/kill',
                             query_params=params)

    def remove(self, container_id: str, force: bool = False, v: bool = False):
        """Remove container"""
        params = {'force': force, 'v': v}
        return self._request('DELETE', container_id, f'/containers/{container_id}',
                             query_params=params)

    def resize(self, container_id: str, height: int, width: int):
        """Resize the container TTY"""
        params = {'h': height, 'w': width}
        return self._request('POST', container_id, f'/containers/{container_id}/resize',
                             query_params=params)

    @staticmethod
    def _log_params(stdout: bool, stderr: bool, timestamps: bool, tail: Union[str, int],
                    since: Optional[int], follow: bool) -> Dict[str, Any]:
        return {
            'stdout': stdout,
            'stderr': stderr,
            'timestamps': timestamps,
            'tail': tail,
            'since': since,
            'follow': follow
        }

    def logs_raw(self, container_id: str, stdout: bool = True, stderr: bool = True,
                 timestamps: bool = False, tail: Union[str, int] = 'all',
                 since: Optional[int] = None, follow: bool = False) -> Response:
        """
        Open the log stream without decoding it

        Returns:
            Response whose body is the multiplexed (or, for TTY containers,
            plain) log stream. The caller must close it.
        """
        params = self._log_params(stdout, stderr, timestamps, tail, since, follow)
        return self._open(container_id, f'/containers/{container_id}/logs', query_params=params)

    def stream_logs(self, container_id: str, tty: Optional[bool] = None,
                    **kwargs) -> Iterator[DecodedLine]:
        """
        Yield log lines as they arrive

        Args:
            container_id: Container ID
            tty: Whether the container has a TTY (default: inspect it).
                TTY logs are not multiplexed and come back as STDOUT lines.
            **kwargs: Same as logs_raw()

        Yields:
            DecodedLine per line; the connection closes when the generator
            finishes or is closed
        """
        if tty is None:
            tty = self.get(container_id).tty

        with self.logs_raw(container_id, **kwargs) as response:
            if tty:
                for line in response.iter_lines():
                    yield DecodedLine(StreamType.STDOUT, line.decode('utf-8', errors='replace'))
            else:
                yield from response.demux().lines()

    def logs(self, container_id: str, tty: Optional[bool] = None, stdout: bool = True,
             stderr: bool = True, timestamps: bool = False, tail: Union[str, int] = 'all',
             since: Optional[int] = None) -> List[DecodedLine]:
        """
        Get container logs

        Args:
            container_id: Container ID
            tty: Whether the container has a TTY (default: inspect it)
            stdout: Return stdout stream
            stderr: Return stderr stream
            timestamps: Show timestamps
            tail: Number of lines to show from end ('all' for all)
            since: Show logs since timestamp (Unix epoch)

        Returns:
            All log lines up to now
        """
        return list(self.stream_logs(
            container_id, tty=tty, stdout=stdout, stderr=stderr,
            timestamps=timestamps, tail=tail, since=since, follow=False
        ))

    def stats(self, container_id: str) -> Dict[str, Any]:
        """Get one stats sample"""
        return self._request('GET', container_id, f'/containers/{container_id}/stats',
                             query_params={'stream': False})

    def stream_stats(self, container_id: str) -> Iterator[Dict[str, Any]]:
        """Yield stats samples until the generator is closed"""
        with self._open(container_id, f'/containers/{container_id}/stats',
                        query_params={'stream': True}) as response:
            for line in response.iter_lines():
                if line:
                    yield json.loads(line.decode('utf-8'))

    def exec_create(self, container_id: str, cmd: Union[str, List[str]], stdout: bool = True,
                    stderr: bool = True, tty: bool = False, privileged: bool = False,
                    user: str = '', environment: Optional[Dict[str, str]] = None,
                    workdir: str = '') -> str:
        """Create an exec instance and return its ID"""
        exec_config = {
            'AttachStdout': stdout,
            'AttachStderr': stderr,
            'AttachStdin': False,
            'Tty': tty,
            'Privileged': privileged,
            'Cmd': cmd if isinstance(cmd, list) else ['sh', '-c', cmd],
        }

        if user:
            exec_config['User'] = user
        if environment:
            exec_config['Env'] = [f"{k}={v}" for k, v in environment.items()]
        if workdir:
            exec_config['WorkingDir'] = workdir

        result = self._request('POST', container_id, f'/containers/{container_id}/exec',
                               body=json.dumps(exec_config))
        return result['Id']

    def exec_inspect(self, exec_id: str) -> Dict[str, Any]:
        """Inspect an exec instance"""
        with self.http.get(f'/exec/{exec_id}/json') as response:
            return read_body(response)

    def exec_run(self, container_id: str, cmd: Union[str, List[str]], tty: bool = False,
                 **kwargs) -> ExecResult:
        """
        Execute command in running container and wait for it

        Args:
            container_id: Container ID
            cmd: Command to execute
            tty: Allocate TTY (output is then not split by stream)
            **kwargs: Passed to exec_create()

        Returns:
            ExecResult with exit code and captured stdout/stderr
        """
        exec_id = self.exec_create(container_id, cmd, tty=tty, **kwargs)

        start_config = json.dumps({'Detach': False, 'Tty': tty})
        with self.http.post(f'/exec/{exec_id}/start', body=start_config) as response:
            response.raise_for_status()
            if tty:
                stdout, stderr = response.read(), b''
            else:
                stdout, stderr = response.demux().collect()

        exit_code = self.exec_inspect(exec_id).get('ExitCode')
        logger.debug(f"Exec {exec_id[:12]} in {container_id} exited with {exit_code}")
        return ExecResult(exit_code, stdout, stderr)

    def put_archive(self, container_id: str, path: str, data: Union[bytes, io.IOBase]) -> bool:
        """
        Upload tar archive to container

        Args:
            container_id: Container ID
            path: Path in container where to extract archive
            data: Tar archive as bytes or a readable binary stream

        Returns:
            True if successful
        """
        if isinstance(data, bytes):
            data = io.BytesIO(data)
        self._request(
            'PUT', container_id, f'/containers/{container_id}/archive',
            query_params={'path': path},
            body=data,
            headers={'Content-Type': 'application/x-tar'}
        )
        return True

    def get_archive(self, container_id: str, path: str) -> bytes:
        """Download path from container as tar archive"""
        with self.http.get(f'/containers/{container_id}/archive',
                           query_params={'path': path}) as response:
            self._raise_for_status(response, container_id)
            return response.read()

    def _raise_for_status(self, response: Response, container_id: str):
        if response.status_code >= 400:
            self._read(response, container_id)
