import logging

from wfsched import Placement, Priority, WorkflowGraph, WorkflowScheduler

logging.basicConfig(level=logging.INFO)


def get_workflow() -> WorkflowGraph:
    workflow = WorkflowGraph()
    workflow.add_job("A", 5)
    workflow.add_job("B", 3)
    workflow.add_job("C", 8)
    workflow.add_job("D", 4)
    workflow.add_job("E", 2)
    workflow.add_job("F", 1)
    workflow.add_job("G", 7)
    workflow.add_job("H", 3)
    workflow.add_communication("A", "D", 2)
    workflow.add_communication("B", "D", 1)
    workflow.add_communication("C", "D", 5)
    workflow.add_communication("D", "E", 3)
    workflow.add_communication("D", "F", 4)
    workflow.add_communication("E", "G", 1)
    workflow.add_communication("F", "G", 2)
    workflow.add_communication("G", "H", 2)
    return workflow


def main():
    workflow = get_workflow()
    print("Workflow Graph:")
    print(workflow)

    for priority in Priority:
        for placement in Placement:
            scheduler = WorkflowScheduler(workflow, 2, priority=priority, placement=placement)
            schedule = scheduler.schedule()
            logging.info("%s / %s: makespan %d", priority.value, placement.value, schedule.makespan)
            print(f"Scheduled Order ({priority.value}, {placement.value}): ", end="")
            print("-->".join(p.name for p in schedule.placements))
            print(schedule)

    schedule = WorkflowScheduler(workflow, 2).schedule()
    print(schedule.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
