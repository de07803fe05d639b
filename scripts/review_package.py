from __future__ import annotations

from dataalchemist.pipeline import ExportBlockedError, export_package, review_files

# --- Input files ---
CLIENTS_PATH = "data/clients.csv"
WORKERS_PATH = "data/workers.csv"
TASKS_PATH = "data/tasks.xlsx"

# Policy & export knobs
POLICY_PATH = "policies/default.yaml"  # set to None to review without rules
OUT_DIR = "out"
FORCE_EXPORT = False
WRITE_WORKBOOK = True


def main() -> int:
    datasets, policy, res = review_files(
        clients=CLIENTS_PATH,
        workers=WORKERS_PATH,
        tasks=TASKS_PATH,
        policy_path=POLICY_PATH,
    )

    print(
        f"[Review] clients={len(datasets.clients)} workers={len(datasets.workers)} "
        f"tasks={len(datasets.tasks)} rules={len(policy.rules)}"
    )
    print(f"[Review] errors={res.summary.errors} warnings={res.summary.warnings}")

    for diag in res.diagnostics:
        where = f"{diag.entity}:{diag.id}" + (f":{diag.field}" if diag.field else "")
        print(f"  [{diag.severity}] {where} {diag.message}")

    try:
        written = export_package(
            datasets, policy, OUT_DIR, force=FORCE_EXPORT, workbook=WRITE_WORKBOOK
        )
    except ExportBlockedError as e:
        print(f"[Export] {e}")
        return 1

    print("[Export] Wrote:")
    for path in written.values():
        print(f"  {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
