# falconagent

A host monitoring agent for Linux. It reads system statistics (CPU, memory,
disk I/O, file systems, network interfaces, TCP and UDP counters, socket
summaries, load average, kernel limits, processes, listening ports,
directory sizes and URL health), turns them into metric values and sends
them to one of the configured transfer servers over JSON-RPC. It reports its
status to a heartbeat server, fetches from it the built-in checks and the
plugin directories to run, and serves a small HTTP interface for inspecting
the host.

## Installation

```
pip install .
```

The agent needs Linux: most collectors read files under `/proc` and `/sys`.
The `du`, `curl` and `ss` commands are used for directory sizes, URL probes
and socket summaries, `uname` for the host description, and `git` for
plugin versions and updates. Process ports and CPU details also use
`psutil`.

## Running

```
falcon-agent -c cfg.json
```

Options:

- `-c FILE` – configuration file (default `cfg.json`)
- `-v` – print the agent version and exit
- `-check` – try each collector once, print `<name> ... ok` or
  `<name> ... fail` for each, and exit

On start the agent loads the configuration, records CPU and disk counters
every second, starts the heartbeat jobs (status report, plugin sync,
built-in check sync, trusted address sync) when the heartbeat is enabled,
starts one collection thread per collector group when transfer is enabled
and has addresses, and then serves HTTP if `http.enabled` is set.

## Configuration

The configuration is a JSON document:

```json
{
  "debug": false,
  "hostname": "",
  "ip": "",
  "plugin": {
    "enabled": false,
    "dir": "./plugin",
    "git": "",
    "logs": "./logs"
  },
  "heartbeat": {
    "enabled": true,
    "addr": "127.0.0.1:6030",
    "interval": 60,
    "timeout": 1000
  },
  "transfer": {
    "enabled": true,
    "addrs": ["127.0.0.1:8433"],
    "interval": 60,
    "timeout": 1000
  },
  "http": {
    "enabled": true,
    "listen": ":1988",
    "backdoor": false
  },
  "collector": {
    "ifacePrefix": ["eth", "em"],
    "mountPoint": []
  },
  "default_tags": {},
  "ignore": {
    "cpu.busy": true
  }
}
```

Timeouts are in milliseconds, intervals in seconds. When `hostname` is
empty the agent uses the `FALCON_ENDPOINT` environment variable, and
otherwise the system host name. Metrics listed under `ignore` with the value
`true` are not sent. Tags under `default_tags` are appended to every metric
before it is sent. Fields of the wrong type make `config.parse_config`
raise `ConfigError`.

## Plugins

With plugins enabled, the heartbeat server names directories below the
plugin directory. Every file there whose name has the form
`<seconds>_<name>` is run on that cycle, and is killed if it runs longer
than the cycle less half a second. Its standard output, a JSON list of
metric values, is forwarded to the transfer servers; its standard error is
written to `<logs>/<plugin path>.stderr.log`.

## HTTP interface

When `http.enabled` is set, the agent listens on `http.listen`. Routes:

- `/health`, `/version`
- `/proc/cpu/num`, `/proc/cpu/mhz`, `/proc/cpu/usage`, `/page/cpu/usage`
- `/proc/memory`, `/page/memory`
- `/proc/kernel/hostname`, `/proc/kernel/maxproc`, `/proc/kernel/maxfiles`,
  `/proc/kernel/version`
- `/proc/system/uptime`, `/page/system/uptime`, `/proc/system/loadavg`,
  `/page/system/loadavg`, `/system/date`
- `/page/df`, `/page/diskio`
- `/plugins`, `/plugin/update`, `/plugin/reset`
- `/v1/push` – accepts a JSON list of metric values and forwards it
- `/workdir`, `/ips`
- `/exit`, `/config/reload` – answer only to trusted addresses: `127.0.0.1`
  and the addresses received from the heartbeat server
- `/run` – runs the request body with `sh -c` for trusted addresses, only
  when `http.backdoor` is enabled
- any other path is served from the `public` directory under the working
  directory

JSON routes answer `{"msg": "success", "data": ...}`, or `{"msg": "<error>"}`
when the figure cannot be read.

## Using the collectors from Python

```python
from falconagent.collect.loadavg import load_avg_metrics
from falconagent.collect.memory import mem_metrics

for metric in load_avg_metrics() + mem_metrics():
    print(metric.to_dict())
```

Parsers such as `collect.memory.parse_mem_info`, `collect.net.parse_net_dev`,
`collect.disk.parse_disk_stats` and `collect.netstat.parse_proto_table` take
file contents as text, so they can be used on saved copies of `/proc` files.

## What it does not do

- It runs on Linux only; elsewhere most collectors return no metrics.
- Service, chain and status tags from a local Consul agent are available
  through `runtime.init_default_tags()`, but the agent does not add them on
  start.
- It writes logs to standard error only; there is no log file or rotation.