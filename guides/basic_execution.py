"""Simple example showing a workflow created, activated and executed."""

from pathlib import Path

from stepflow import build_runtime
from stepflow.logging import configure_logging


def main():
    """Basic execution example."""
    configure_logging("INFO")

    # In-memory storage unless STEPFLOW_DATABASE_URL is set
    runtime = build_runtime()

    text = (Path(__file__).parent / "hello_workflow.yaml").read_text()
    revision = runtime.revisions.create_workflow(text)
    runtime.revisions.activate(revision.revision_id)

    execution = runtime.executions.run(revision.revision_id, {"name": "Ada", "vip": "true"})

    print(f"Execution {execution.execution_id}: {execution.status.value}")
    for result in runtime.executions.get_step_results(execution.execution_id):
        print(f"  [{result.step_index}] {result.step_id}: {result.status.value}")


if __name__ == "__main__":
    main()
