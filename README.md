# fnops

Tools for managing serverless function resources (functions, git
repositories, subscriptions, API rules) through a cluster client, and for
preparing and running function runtimes in containers through a container
engine client.

## Modules

- `fnops.client` – the `Unstructured` object model (a resource held as a
  nested dictionary, with `name`, `namespace`, `kind`, `api_version`, `uid`
  and `owner_references`), the abstract `Client` class every backend
  implements, the errors `ClientError`, `NotFoundError`,
  `AlreadyExistsError` and `ConflictError`, and per-object results
  (`PostStatusEntry`, `StatusType`, `Status`).
- `fnops.operator` – the apply/delete primitives: `apply_object` creates an
  object, updates it when its `spec`, labels or annotations differ
  (retrying on `ConflictError`), or skips it when they are equal;
  `wipe_removed` deletes listed objects that a predicate matches;
  `delete_object`, `wait_for_object` and `fire_callbacks` for pre/post
  hooks. Options are `ApplyOptions` and `DeleteOptions` with `Callbacks`.
- `fnops.operators` – `GenericOperator`, `APIRuleOperator` and
  `SubscriptionOperator`. The last two also delete API rules or
  subscriptions that point at the function, are owned by it (or have no
  owner) and are no longer among the declared objects.
- `fnops.manager` – `Manager` applies parent operators and then their
  children, in the order added. With `ManagerOptions(set_owner_references=True)`
  the objects applied by a parent become owner references of its children;
  with `on_error=OnError.PURGE` the parents are deleted when applying fails,
  and the error is raised again.
- `fnops.runtimes` – container image, environment, commands, debug port and
  mounts for each `Runtime` (`nodejs14`, `nodejs16`, `python39`).
- `fnops.docker` – `run_container`, `follow_run` and `stop` over any
  `DockerClient` implementation. `run_container` pulls the image when
  creation raises `ImageNotFoundError`; `demultiplex` splits an attached
  output stream into stdout and stderr; `display_json_messages` prints pull
  progress.
- `fnops.generator` – `generate_name` returns random `adjective-name`
  names, optionally with a trailing digit.
- `fnops.memclient` – `MapClient`, a `Client` that keeps objects in a list,
  with `new_sample`, `load` and `from_string` to build objects from YAML.

## Install

```
pip install .
```

## Example

```python
from fnops.manager import Manager, ManagerOptions
from fnops.memclient import MapClient, new_sample
from fnops.operators import GenericOperator

client = MapClient(api_version="test.me.plz/v1alpha1", kind="Sample",
                   group="test.me.pl", resource="samples")

manager = Manager()
manager.add_parent(
    GenericOperator(client, new_sample("parent", "test-ns")),
    [GenericOperator(client, new_sample("child", "test-ns"))],
)
manager.do(ManagerOptions(set_owner_references=True))

for obj in client.list():
    print(obj.name, obj.owner_references)
```

The child ends up with an owner reference that points at the parent.

## Command line

```
fnops
```

This applies a parent sample with three children to an in-memory client and
prints each stored object as a YAML document, each followed by `---`. It
takes no options other than `--help`, exits with 0 on success and with 1
after printing the error otherwise.

## What it does not do

The package has no client for a real cluster API and no client for a real
container engine: `Client` and `DockerClient` are abstract, and the only
implementation shipped is the in-memory `MapClient`. Its `watch` reports the
matching objects present at the time of the call as added, then ends. There
is no command for initialising or synchronising a function workspace on
disk.

## Tests

```
pip install .[test]
pytest
```