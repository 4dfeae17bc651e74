"""Prompt templates that walk an agent through common tracker workflows."""


def daily_review() -> str:
    return """# Daily Review

Go through today's work with the tracker before starting anything new.

1. Read `tasktrack://stats` for the overall picture: pending, completed and
   overdue counts, and the oldest pending task.
2. Read `tasktrack://tasks/overdue`. For each overdue task decide: finish it
   today, move the due date with `update_task`, or delete it with
   `delete_task` if it no longer matters.
3. Read `tasktrack://tasks/high-priority` and pick at most three open items
   to focus on today.
4. Anything finished since yesterday: call `mark_done` with its ID (a unique
   6+ character prefix is enough).
5. Report a short plan: focus items, overdue decisions, and blockers.

Keep priorities honest. If everything is high priority, nothing is.
"""


def plan_project(project_name: str = "") -> str:
    name = project_name or "[project name]"
    return f"""# Plan Project: {name}

Break the project into tracked tasks.

1. Call `list_projects`. If "{name}" is missing, create it with
   `create_project(name="{name}")` and keep the returned project ID.
2. Split the work into 2-5 phases (for example setup, implementation,
   testing, release). Each phase becomes a label.
3. For every concrete step call `create_task` with:
   - `description`: an action, e.g. "Write schema migration"
   - `project_id`: the project ID from step 1
   - `priority`: high for the critical path, medium for important work,
     low for nice-to-have
   - `labels`: the phase label plus any area labels
   - `due_date`: only for real deadlines (ISO 8601)
4. Review with `list_tasks(project_id=...)`, then per phase with the `label`
   filter, and fix gaps with `update_task`.
5. Note dependencies in `notes`, naming the blocking task's ID prefix.

Start with 10-20 tasks and refine as work begins.
"""


def report_status(time_range: str = "") -> str:
    period = time_range or "this week"
    return f"""# Status Report: {period}

Produce a status report for {period}.

1. Read `tasktrack://stats` for totals and the per-project breakdown.
2. Call `list_tasks(done=true)` and keep tasks whose `completed_at` falls in
   {period}; these are the accomplishments.
3. Call `list_tasks(done=false)` for work in progress and
   `list_tasks(overdue=true)` for slipping items.
4. Group findings by project, then by label.
5. Write the report: completed work, in-progress work, overdue or blocked
   items with a proposed action, and next priorities.

Lead with outcomes, not task counts.
"""


def sprint_planning(sprint_duration: str = "") -> str:
    duration = sprint_duration or "2 weeks"
    return f"""# Sprint Planning: {duration}

Turn the open backlog into a focused sprint of {duration}.

1. Call `list_tasks(done=false)` and note the pending count. Delete or
   `mark_done` anything that is stale or already finished.
2. Check the spread with `list_tasks(done=false, priority="high")`, then
   medium and low. If more than about a third is high priority, demote the
   rest with `update_task`.
3. Call `list_labels`, then `list_tasks(done=false, label=...)` for the
   largest labels to find the natural workstreams.
4. Pick 2-4 sprint goals, each tied to a label or project, that fit in
   {duration}.
5. Add a `sprint` label to every task you commit to with `add_label`, and
   set `due_date` on the tasks that must land by the sprint's end.
6. Leave everything else in the backlog. Review with
   `list_tasks(label="sprint")`.

Commit to less than you think you can do; unfinished sprint work rolls over.
"""


def track_agent_work() -> str:
    return """# Track Agent Work

Use the tracker for work a human or another agent will care about, not for
your own internal steps.

Create tasks for:
- deliverables a human will review (a design note, a recommendation)
- decisions that need human input
- blocked work, with what it is waiting on in `notes`
- work that spans more than one session
- handoffs to another agent

Do not create tasks for single searches, file reads, reasoning steps, or
anything that finishes within the current session.

1. Before starting, call `list_tasks(done=false)` to see whether the work is
   already tracked.
2. Create one task per outcome with `create_task`: describe the result, not
   the process, and set `priority` to high only when it blocks someone.
3. As you learn things, record findings in `notes` with `update_task`.
4. When the outcome is delivered, call `mark_done`. If it is no longer
   needed, `delete_task` instead of leaving it open.

Ask yourself: would someone else read this task? If not, keep it internal.
"""


def coordinate_tasks() -> str:
    return """# Coordinate Tasks

Several agents sharing one tracker. Check before you start and keep status
visible so work is neither duplicated nor dropped.

1. Look for existing work first: `list_tasks(done=false, label=...)` for the
   topic, `list_tasks(project_id=..., done=false)` for the project.
2. If a matching task exists, claim it instead of creating a duplicate:
   `add_label(task_id=..., label="in-progress")` and put your name in
   `notes` with `update_task`.
3. Otherwise `create_task` with labels for the area and for your role, and
   note any dependency by the blocking task's ID prefix.
4. Signal state with labels: `in-progress`, `blocked`, `needs-review`,
   `needs-decision`. Swap them with `remove_label` and `add_label` as the
   state changes.
5. To hand off, add `needs-review` (or the next agent's label), drop
   `in-progress`, and summarise what is done and what remains in `notes`.
6. Finish with `mark_done`, then check `list_tasks(label="blocked")` for work
   your result unblocks.

Raise priority with `update_task` when your task blocks another agent.
"""


PROMPTS = {
    "daily-review": (
        daily_review,
        "Morning review: overdue items, today's focus, and completed work.",
    ),
    "plan-project": (
        plan_project,
        "Break a new project into labelled, prioritised tasks.",
    ),
    "report-status": (
        report_status,
        "Summarise progress over a time range from tracker data.",
    ),
    "sprint-planning": (
        sprint_planning,
        "Organise the backlog into a focused sprint with goals and scope.",
    ),
    "track-agent-work": (
        track_agent_work,
        "When and how an agent should track its own work for human visibility.",
    ),
    "coordinate-tasks": (
        coordinate_tasks,
        "Multi-agent workflow: check for related work, claim it, signal status.",
    ),
}
