import argparse
import os
from dataclasses import dataclass, replace

# ===== DEFAULTS =====
DEFAULT_HOST = ''  # every IPv4 interface
DEFAULT_PORT = 5555
DEFAULT_BACKLOG = 5
DEFAULT_BUFFER_SIZE = 8192
DEFAULT_HEALTH_PORT = 0  # disabled

POLICY_IGNORE = 'ignore'
POLICY_DROP = 'drop'
WRITE_FAILURE_POLICIES = (POLICY_IGNORE, POLICY_DROP)


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    backlog: int = DEFAULT_BACKLOG
    buffer_size: int = DEFAULT_BUFFER_SIZE
    write_failure_policy: str = POLICY_IGNORE
    log_level: str = 'INFO'
    log_file: str = ''
    health_port: int = DEFAULT_HEALTH_PORT

    def __post_init__(self) -> None:
        if self.write_failure_policy not in WRITE_FAILURE_POLICIES:
            raise ValueError(f"Unknown write failure policy: {self.write_failure_policy!r}")
        if self.buffer_size <= 0:
            raise ValueError("Buffer size must be positive")
        if not 0 <= self.port <= 65535 or not 0 <= self.health_port <= 65535:
            raise ValueError("Port must be in range 0-65535")

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Read settings from RELAY_* environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get('RELAY_HOST', DEFAULT_HOST),
            port=int(env.get('RELAY_PORT', DEFAULT_PORT)),
            backlog=int(env.get('RELAY_BACKLOG', DEFAULT_BACKLOG)),
            buffer_size=int(env.get('RELAY_BUFFER_SIZE', DEFAULT_BUFFER_SIZE)),
            write_failure_policy=env.get('RELAY_WRITE_FAILURE_POLICY', POLICY_IGNORE),
            log_level=env.get('RELAY_LOG_LEVEL', 'INFO'),
            log_file=env.get('RELAY_LOG_FILE', ''),
            health_port=int(env.get('RELAY_HEALTH_PORT', DEFAULT_HEALTH_PORT)),
        )


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='chat-relay', description='Broadcast every byte a peer sends to all other peers.')
    p.add_argument('--host', default=defaults.host, help='bind address (default: all interfaces)')
    p.add_argument('--port', type=int, default=defaults.port)
    p.add_argument('--backlog', type=int, default=defaults.backlog)
    p.add_argument('--buffer-size', type=int, default=defaults.buffer_size)
    p.add_argument('--write-failure-policy', choices=WRITE_FAILURE_POLICIES, default=defaults.write_failure_policy)
    p.add_argument('--log-level', default=defaults.log_level)
    p.add_argument('--log-file', default=defaults.log_file)
    p.add_argument('--health-port', type=int, default=defaults.health_port, help='HTTP health port, 0 disables')
    return p


def parse_args(argv=None, environ=None) -> Settings:
    """Environment first, command-line flags on top. Bad values exit with status 2."""
    try:
        defaults = Settings.from_env(environ)
    except ValueError as e:
        build_parser(Settings()).error(f"invalid RELAY_* environment: {e}")
    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    try:
        return replace(
            defaults,
            host=args.host,
            port=args.port,
            backlog=args.backlog,
            buffer_size=args.buffer_size,
            write_failure_policy=args.write_failure_policy,
            log_level=args.log_level.upper(),
            log_file=args.log_file,
            health_port=args.health_port,
        )
    except ValueError as e:
        parser.error(str(e))
