"""kubectl-style command parsing and dispatch."""

import shlex
from typing import Callable, Dict, List, Optional, Tuple

from ..model.config import EngineConfig
from ..model.resources import ResourceKind, ServiceType
from ..model.result import CommandResult, ParsedCommand
from ..utils.logger import get_logger
from .errors import KubeSimError, ValidationError
from .store import ResourceStore

logger = get_logger(__name__)

# Accepted spellings of each resource type
RESOURCE_ALIASES: Dict[str, ResourceKind] = {
    "pod": ResourceKind.POD,
    "pods": ResourceKind.POD,
    "po": ResourceKind.POD,
    "deployment": ResourceKind.DEPLOYMENT,
    "deployments": ResourceKind.DEPLOYMENT,
    "deploy": ResourceKind.DEPLOYMENT,
    "replicaset": ResourceKind.REPLICA_SET,
    "replicasets": ResourceKind.REPLICA_SET,
    "rs": ResourceKind.REPLICA_SET,
    "service": ResourceKind.SERVICE,
    "services": ResourceKind.SERVICE,
    "svc": ResourceKind.SERVICE,
    "configmap": ResourceKind.CONFIG_MAP,
    "configmaps": ResourceKind.CONFIG_MAP,
    "cm": ResourceKind.CONFIG_MAP,
    "secret": ResourceKind.SECRET,
    "secrets": ResourceKind.SECRET,
    "node": ResourceKind.NODE,
    "nodes": ResourceKind.NODE,
    "no": ResourceKind.NODE,
}

# Short flags and the long names they stand for
SHORT_FLAGS = {"-o": "output", "-r": "replicas", "-t": "type"}

# Verbs whose second token is a sub-command rather than a resource type
SUBCOMMAND_VERBS = {"set", "rollout"}

Handler = Callable[[ParsedCommand], CommandResult]


def parse_command(line: str, prefix: str = "kubectl") -> ParsedCommand:
    """Split a command line into verb, resource, name, positional args and flags.

    Raises ValidationError for empty input, a wrong prefix, unbalanced quotes or
    a dangling flag.
    """
    try:
        tokens = shlex.split(line)
    except ValueError as e:
        raise ValidationError(f"Could not parse command: {e}")

    if not tokens:
        raise ValidationError("Empty command")
    if tokens[0] != prefix:
        raise ValidationError(f'Commands must start with "{prefix}"')
    if len(tokens) < 2:
        raise ValidationError(f"Invalid {prefix} command")

    positional: List[str] = []
    flags: Dict[str, List[str]] = {}
    index = 1
    while index < len(tokens):
        token = tokens[index]
        if token.startswith("--"):
            key, sep, value = token[2:].partition("=")
            if not sep:
                if index + 1 >= len(tokens) or tokens[index + 1].startswith("-"):
                    raise ValidationError(f"Flag --{key} requires a value")
                index += 1
                value = tokens[index]
            flags.setdefault(key, []).append(value)
        elif token in SHORT_FLAGS:
            if index + 1 >= len(tokens):
                raise ValidationError(f"Flag {token} requires a value")
            index += 1
            flags.setdefault(SHORT_FLAGS[token], []).append(tokens[index])
        else:
            positional.append(token)
        index += 1

    if not positional:
        raise ValidationError(f"Invalid {prefix} command")

    verb = positional[0]
    rest = positional[1:]
    if verb in SUBCOMMAND_VERBS and rest:
        # "set image deployment/web app=nginx:1.25" -> verb "set image"
        verb = f"{verb} {rest[0]}"
        rest = rest[1:]

    resource = rest[0] if rest else None
    name = rest[1] if len(rest) > 1 else None
    args = rest[2:]

    # "deployment/web" form
    if resource and "/" in resource:
        resource, _, slash_name = resource.partition("/")
        if name is not None:
            args = [name] + args
        name = slash_name or None

    return ParsedCommand(verb=verb, resource=resource, name=name, args=args, flags=flags)


def parse_int(value: Optional[str], label: str) -> int:
    """Parse a non-negative integer argument."""
    if value is None:
        raise ValidationError(f"{label} value required")
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f'Invalid {label} value: "{value}"')
    if number < 0:
        raise ValidationError(f"{label} must be zero or more, got {number}")
    return number


def parse_literals(values: List[str]) -> Dict[str, str]:
    """Turn ``--from-literal=key=value`` flags into a dict."""
    data = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValidationError(f'Invalid literal "{item}", expected key=value')
        data[key] = value
    return data


class CommandInterpreter:
    """Parses command lines and dispatches them against the store.

    The interpreter is the one place domain errors become failure results; it
    never raises.
    """

    def __init__(self, store: ResourceStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or store.config

        # Dictionary mapping verbs to handlers
        self._verbs: Dict[str, Handler] = {
            "create": self._create,
            "get": self._get,
            "delete": self._delete,
            "scale": self._scale,
            "apply": self._apply,
            "set image": self._set_image,
            "rollout undo": self._rollout_undo,
            "rollout pause": self._rollout_pause,
            "rollout resume": self._rollout_resume,
            "rollout status": self._rollout_status,
        }

        # Dictionary mapping resource kinds to create and get handlers
        self._creators: Dict[ResourceKind, Handler] = {
            ResourceKind.POD: self._create_pod,
            ResourceKind.DEPLOYMENT: self._create_deployment,
            ResourceKind.SERVICE: self._create_service,
            ResourceKind.CONFIG_MAP: self._create_config_map,
            ResourceKind.SECRET: self._create_secret,
        }
        self._listers: Dict[ResourceKind, Callable[[], List[Dict[str, object]]]] = {
            ResourceKind.POD: self._pod_rows,
            ResourceKind.NODE: self._node_rows,
            ResourceKind.DEPLOYMENT: self._deployment_rows,
            ResourceKind.REPLICA_SET: self._replica_set_rows,
            ResourceKind.SERVICE: self._simple_rows(ResourceKind.SERVICE),
            ResourceKind.CONFIG_MAP: self._simple_rows(ResourceKind.CONFIG_MAP),
            ResourceKind.SECRET: self._simple_rows(ResourceKind.SECRET),
        }

    def execute(self, line: str) -> CommandResult:
        """Run one command line and describe the outcome."""
        try:
            command = parse_command(line, self.config.command_prefix)
            handler = self._verbs.get(command.verb)
            if handler is None:
                raise ValidationError(f"Unknown command: {command.verb}")
            result = handler(command)
        except KubeSimError as e:
            logger.debug(f"Command failed ({e.error_kind}): {line!r}: {e}")
            return CommandResult.fail(f"Error: {e}", error=e.error_kind)
        except Exception as e:
            logger.exception(f"Unexpected error running {line!r}")
            return CommandResult.fail(f"Internal error: {e}", error="Internal")

        logger.debug(f"Command succeeded: {line!r}")
        return result

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _kind(command: ParsedCommand) -> ResourceKind:
        if command.resource is None:
            raise ValidationError(f"Resource type required for {command.verb}")
        kind = RESOURCE_ALIASES.get(command.resource.lower())
        if kind is None:
            raise ValidationError(f"Unsupported resource type: {command.resource}")
        return kind

    @staticmethod
    def _name(command: ParsedCommand) -> str:
        if not command.name:
            raise ValidationError("Resource name required")
        return command.name

    def _deployment_name(self, command: ParsedCommand) -> str:
        kind = self._kind(command)
        if kind != ResourceKind.DEPLOYMENT:
            raise ValidationError(f"Cannot {command.verb} resource: {command.resource}")
        return self._name(command)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def _create(self, command: ParsedCommand) -> CommandResult:
        resource = RESOURCE_ALIASES.get((command.resource or "").lower())
        if resource == ResourceKind.SECRET and command.name == "generic":
            # "create secret generic NAME"
            name = command.args[0] if command.args else None
            command = command.model_copy(update={"name": name, "args": command.args[1:]})

        kind = self._kind(command)
        creator = self._creators.get(kind)
        if creator is None:
            raise ValidationError(f"Unsupported resource type: {command.resource}")
        self._name(command)
        return creator(command)

    def _create_pod(self, command: ParsedCommand) -> CommandResult:
        pod = self.store.create_pod(command.name, image=command.flag("image"))
        return CommandResult.ok(f'Pod "{pod.name}" created on {pod.node_name}')

    def _create_deployment(self, command: ParsedCommand) -> CommandResult:
        replicas = parse_int(command.flag("replicas", "1"), "replicas")
        deployment = self.store.create_deployment(
            command.name, replicas=replicas, image=command.flag("image")
        )
        return CommandResult.ok(
            f'Deployment "{deployment.name}" created with {replicas} replica(s)'
        )

    def _create_service(self, command: ParsedCommand) -> CommandResult:
        raw_type = command.flag("type", ServiceType.CLUSTER_IP.value)
        service_types = {t.value.lower(): t for t in ServiceType}
        service_type = service_types.get(raw_type.lower())
        if service_type is None:
            allowed = ", ".join(t.value for t in ServiceType)
            raise ValidationError(f'Invalid service type "{raw_type}", expected one of {allowed}')

        service = self.store.create_service(command.name, service_type)
        return CommandResult.ok(f'Service "{service.name}" created ({service.type.value})')

    def _create_config_map(self, command: ParsedCommand) -> CommandResult:
        data = parse_literals(command.flag_values("from-literal"))
        config_map = self.store.create_config_map(command.name, data)
        return CommandResult.ok(f'ConfigMap "{config_map.name}" created')

    def _create_secret(self, command: ParsedCommand) -> CommandResult:
        data = parse_literals(command.flag_values("from-literal"))
        secret = self.store.create_secret(command.name, data)
        return CommandResult.ok(f'Secret "{secret.name}" created')

    # ------------------------------------------------------------------
    # get
    # ------------------------------------------------------------------

    def _get(self, command: ParsedCommand) -> CommandResult:
        kind = self._kind(command)
        rows = self._listers[kind]()

        if command.name:
            rows = [row for row in rows if row["name"] == command.name]
            if not rows:
                return CommandResult.fail(
                    f'Error: {kind.display_name} "{command.name}" not found', error="NotFound"
                )

        label = f"{kind.display_name.upper()}S"
        if not rows:
            return CommandResult.ok(f"No {kind.display_name} resources found", data=[])
        return CommandResult.ok(f"{label}:", data=rows)

    def _pod_rows(self) -> List[Dict[str, object]]:
        return [pod.summary() for pod in self.store.list_pods()]

    def _node_rows(self) -> List[Dict[str, object]]:
        return [node.summary() for node in self.store.list_nodes()]

    def _deployment_rows(self) -> List[Dict[str, object]]:
        rows = []
        for deployment in self.store.list_deployments():
            replica_set = self.store.replica_set_for(deployment.name)
            ready = self.store.count_running(replica_set.name) if replica_set else 0
            rows.append(deployment.summary(ready=ready))
        return rows

    def _replica_set_rows(self) -> List[Dict[str, object]]:
        return [rs.summary() for rs in self.store.list_replica_sets()]

    def _simple_rows(self, kind: ResourceKind) -> Callable[[], List[Dict[str, object]]]:
        return lambda: [resource.summary() for resource in self.store.list(kind)]

    # ------------------------------------------------------------------
    # delete / scale / apply
    # ------------------------------------------------------------------

    def _delete(self, command: ParsedCommand) -> CommandResult:
        kind = self._kind(command)
        name = self._name(command)
        self.store.delete(kind, name)
        return CommandResult.ok(f'{kind.display_name} "{name}" deleted')

    def _scale(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        raw = command.flag("replicas") or (command.args[0] if command.args else None)
        replicas = parse_int(raw, "replicas")
        self.store.scale_deployment(name, replicas)
        return CommandResult.ok(f'Deployment "{name}" scaled to {replicas} replicas')

    def _apply(self, command: ParsedCommand) -> CommandResult:
        return CommandResult.fail(
            f"{self.config.command_prefix} apply is not implemented", error="NotImplemented"
        )

    # ------------------------------------------------------------------
    # set image / rollout
    # ------------------------------------------------------------------

    def _set_image(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        if not command.args:
            raise ValidationError("Image required, e.g. app=nginx:1.25")
        image = self._split_image(command.args[0])
        deployment = self.store.update_image(name, image)
        return CommandResult.ok(f'Deployment "{name}" image updated to {deployment.image}')

    @staticmethod
    def _split_image(arg: str) -> str:
        # "container=image" or a bare image; image tags may themselves contain ":"
        container, sep, image = arg.partition("=")
        return image if sep else container

    def _rollout_undo(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        deployment = self.store.rollback(name)
        return CommandResult.ok(f'Deployment "{name}" rolled back to {deployment.image}')

    def _rollout_pause(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        self.store.set_paused(name, True)
        return CommandResult.ok(f'Deployment "{name}" paused')

    def _rollout_resume(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        self.store.set_paused(name, False)
        return CommandResult.ok(f'Deployment "{name}" resumed')

    def _rollout_status(self, command: ParsedCommand) -> CommandResult:
        name = self._deployment_name(command)
        deployment = self.store.require(ResourceKind.DEPLOYMENT, name)
        updated, ready = self._rollout_progress(name, deployment.image)

        if deployment.paused:
            message = f'Deployment "{name}" rollout is paused'
        elif updated == ready == deployment.replicas:
            message = f'Deployment "{name}" successfully rolled out'
        else:
            message = (
                f'Waiting for deployment "{name}" rollout to finish: '
                f"{updated} of {deployment.replicas} updated replicas are available"
            )

        row = {
            "name": name,
            "image": deployment.image,
            "desired": deployment.replicas,
            "updated": updated,
            "ready": ready,
            "paused": deployment.paused,
        }
        return CommandResult.ok(message, data=[row])

    def _rollout_progress(self, name: str, image: str) -> Tuple[int, int]:
        replica_set = self.store.replica_set_for(name)
        if replica_set is None:
            return 0, 0
        running = [pod for pod in self.store.pods_owned_by(replica_set.name) if pod.is_running]
        updated = sum(1 for pod in running if pod.image == image)
        return updated, len(running)
