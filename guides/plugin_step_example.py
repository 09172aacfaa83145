"""Example of a custom step type registered through a provider.

A package would normally publish ``GreetingStepTypesProvider`` under the
``stepflow.step_types`` entry point group:

    [project.entry-points."stepflow.step_types"]
    greetings = "my_package.steps:GreetingStepTypesProvider"

Here the provider is passed to ``build_runtime`` directly.
"""

import sys
from typing import ClassVar

from stepflow import build_runtime
from stepflow.config import DiscoveryConfig, StepflowConfig
from stepflow.errors import StepFailedError
from stepflow.steps import StepOutcome, StepStatus, Task

WORKFLOW = """\
namespace: demo
id: greeter
name: Greeter
parameters:
  - name: name
    type: STRING
steps:
  - id: greet
    type: Greet
    parameter: name
  - type: LogTask
    message: done
"""


class GreetTask(Task):
    """Builds a greeting from a parameter and exposes it as the step output."""

    type_name: ClassVar[str] = "Greet"

    parameter: str

    def execute(self, context):
        name = context.get_parameter(self.parameter)
        if not name:
            raise StepFailedError(f"Nobody to greet: '{self.parameter}' is empty")
        return StepOutcome(StepStatus.COMPLETED, context, {"greeting": f"Hello, {name}!"})


class GreetingStepTypesProvider:
    def provide_step_types(self):
        return {"Greet": GreetTask}


def main():
    name = sys.argv[1] if len(sys.argv) > 1 else "World"

    runtime = build_runtime(
        config=StepflowConfig(discovery=DiscoveryConfig(enabled=False)),
        step_providers=[GreetingStepTypesProvider()],
    )
    revision = runtime.revisions.create_workflow(WORKFLOW)
    runtime.revisions.activate(revision.revision_id)

    execution = runtime.executions.run(revision.revision_id, {"name": name})
    print(f"Execution {execution.execution_id}: {execution.status.value}")
    for result in runtime.executions.get_step_results(execution.execution_id):
        print(f"  [{result.step_index}] {result.step_id}: {result.output_data}")


if __name__ == "__main__":
    main()
