"""
GBP-Sync Hourly DAG

Runs the Google Business Profile sync job:
1. Loads every registered location and its Google credential
2. Syncs location details (history rows, status notifications)
3. Syncs reviews, or queues them for the review consumer
4. Queues media sync for every location

Schedule: Hourly at minute 15, America/Toronto
"""
from datetime import datetime, timedelta

from airflow import DAG
from airflow.operators.python import PythonOperator
import pendulum


TZ = pendulum.timezone("America/Toronto")

default_args = {
    "owner": "gbp-sync",
    "depends_on_past": False,
    "email_on_failure": False,
    "email_on_retry": False,
    "retries": 2,  # Retries live here, not in the sync job
    "retry_delay": timedelta(minutes=5),
}


def run_gbp_sync(**context):
    """
    Run one sync pass.

    Database URL comes from the Airflow connection `postgres_default`, falling
    back to DATABASE_URL in the worker environment.
    """
    import os
    import sys
    from airflow.hooks.base import BaseHook

    project_root = '/opt/airflow'
    if project_root not in sys.path:
        sys.path.insert(0, project_root)

    from gbp_sync.sync.config_loader import load_sync_config
    from gbp_sync.sync.main import build_components, run_sync

    try:
        conn = BaseHook.get_connection('postgres_default')
        os.environ['DATABASE_URL'] = conn.get_uri().replace('postgres://', 'postgresql://')
        print("Using Airflow connection: postgres_default")
    except Exception as e:
        print(f"Warning: Could not get Airflow connection, using DATABASE_URL: {e}")

    config = load_sync_config()
    db, credentials, publisher = build_components(config)
    stats = run_sync(db, credentials, publisher, config)

    print(f"Sync finished: {stats}")
    context['ti'].xcom_push(key='sync_stats', value=stats)
    return stats


with DAG(
    dag_id="gbp_sync_hourly",
    default_args=default_args,
    description="Sync Google Business Profile locations and reviews",
    schedule_interval="15 * * * *",
    start_date=datetime(2025, 10, 1, tzinfo=TZ),
    catchup=False,
    max_active_runs=1,  # Runs must not overlap
    tags=["gbp", "sync", "hourly"],
) as dag:

    sync = PythonOperator(
        task_id="sync_locations_and_reviews",
        python_callable=run_gbp_sync,
        doc_md="""
        **Sync Google Business Profile data**

        - Diffs each location against the stored row and records history
        - Notifies organization members of verification status changes
        - Failures of one location never stop the others
        """
    )
