"""
Simulation API routes.
"""

import asyncio
import json
import logging
import random
from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks
from fastapi.responses import StreamingResponse

from ..schemas import (
    SimulationRunRequest,
    SimulationTaskResponse,
    SimulationResultsResponse,
    TeamResult,
    CalibrationRequest,
    CalibrationResponse
)
from ...core.config import get_settings
from ...core.exceptions import ConfigurationError, SimulationCancelledError
from ...simulator import run_simulation, calibrate_ratings, fallback_odds, SeasonPlan
from ...tasks import SimulationTask, SimulationTaskStore, get_task_store, PENDING, RUNNING, CANCELLED, FAILED


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/simulations", tags=["simulations"])


def _task_response(task: SimulationTask) -> SimulationTaskResponse:
    return SimulationTaskResponse(
        task_id=task.id,
        status=task.status,
        progress=task.progress,
        error=task.error_message
    )


def _get_task_or_404(store: SimulationTaskStore, task_id: str) -> SimulationTask:
    task = store.get_by_id(task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return task


def run_simulation_task(task_id: str, request: SimulationRunRequest, store: SimulationTaskStore):
    """
    Background task to run a simulation.

    Runs in the threadpool so the event loop stays free for status polling.

    Args:
        task_id: The simulation task ID
        request: The simulation request parameters
        store: Task store to report progress into
    """
    task = store.get_by_id(task_id)
    if task is None or task.is_finished:
        return

    store.update_progress(task, 0)
    settings = get_settings()
    teams, games = request.to_domain()
    rng = random.Random(request.seed) if request.seed is not None else None

    try:
        results, simulated_odds = run_simulation(
            teams,
            games,
            request.n_simulations,
            request.market_odds,
            request.seed_ratings,
            request.forced_outcomes,
            settings=settings,
            rng=rng,
            progress_callback=lambda pct: store.update_progress(task, pct),
            should_cancel=task.cancel_requested
        )
    except SimulationCancelledError as e:
        logger.info("Task %s cancelled after %d trials", task_id, e.completed_trials)
        store.mark_cancelled(task)
        return
    except Exception as e:
        logger.exception("Simulation task %s failed", task_id)
        store.fail(task, str(e))
        return

    teams_by_id = {team.id: team for team in teams}
    team_results = []
    for result in results:
        team = teams_by_id[result.team_id]
        team_results.append(TeamResult(
            id=team.id,
            name=team.name,
            conference=team.conference,
            division=team.division,
            record=team.record_str,
            win_pct=team.win_pct,
            playoff_pct=result.playoff_prob,
            division_pct=result.division_prob,
            wildcard_pct=result.wildcard_prob,
            first_seed_pct=result.first_seed_prob
        ))

    response_data = SimulationResultsResponse(
        n_simulations=request.n_simulations,
        teams=team_results,
        simulated_odds=simulated_odds,
        fallback_odds=fallback_odds(games, teams, request.market_odds, settings)
    )
    store.complete(task, response_data.model_dump(mode="json"))


@router.post("/run", response_model=SimulationTaskResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_simulation(
    request: SimulationRunRequest,
    background_tasks: BackgroundTasks,
    store: SimulationTaskStore = Depends(get_task_store)
) -> SimulationTaskResponse:
    """
    Start a simulation.

    Returns a task ID that can be used to poll for status and results.
    The simulation runs in the background.
    """
    settings = get_settings()
    if request.n_simulations is None:
        request.n_simulations = settings.default_trials
    if request.n_simulations > settings.max_trials:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"n_simulations may not exceed {settings.max_trials}"
        )

    # Reject bad input before queueing
    teams, games = request.to_domain()
    try:
        SeasonPlan(
            teams, games, request.market_odds, request.seed_ratings,
            request.forced_outcomes, settings
        )
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    task = store.create(request.n_simulations)
    background_tasks.add_task(run_simulation_task, task.id, request, store)

    return SimulationTaskResponse(
        task_id=task.id,
        status=PENDING,
        progress=0
    )


@router.post("/calibrate", response_model=CalibrationResponse)
def calibrate(request: CalibrationRequest) -> CalibrationResponse:
    """
    Fit seed ratings so simulated playoff odds match the targets.

    Runs synchronously; keep batch_trials * iterations modest.
    """
    teams, games = request.to_domain()
    rng = random.Random(request.seed) if request.seed is not None else None

    try:
        result = calibrate_ratings(
            teams,
            games,
            request.seed_ratings,
            request.target_playoff_probs,
            request.market_odds,
            request.forced_outcomes,
            iterations=request.iterations,
            batch_trials=request.batch_trials,
            learning_rate=request.learning_rate,
            threshold=request.threshold,
            rng=rng
        )
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return CalibrationResponse(**result.to_dict())


@router.get("/{task_id}/status", response_model=SimulationTaskResponse)
async def get_simulation_status(
    task_id: str,
    store: SimulationTaskStore = Depends(get_task_store)
) -> SimulationTaskResponse:
    """
    Get the status of a running simulation.
    """
    return _task_response(_get_task_or_404(store, task_id))


@router.post("/{task_id}/cancel", response_model=SimulationTaskResponse)
async def cancel_simulation(
    task_id: str,
    store: SimulationTaskStore = Depends(get_task_store)
) -> SimulationTaskResponse:
    """
    Request cancellation; a running simulation stops after its current trial.
    """
    task = store.cancel(task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return _task_response(task)


@router.get("/{task_id}/results", response_model=SimulationResultsResponse)
async def get_simulation_results(
    task_id: str,
    store: SimulationTaskStore = Depends(get_task_store)
) -> SimulationResultsResponse:
    """
    Get the results of a completed simulation.
    """
    task = _get_task_or_404(store, task_id)

    if task.status in (PENDING, RUNNING):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Simulation is still running"
        )

    if task.status == CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Simulation was cancelled"
        )

    if task.status == FAILED:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Simulation failed: {task.error_message}"
        )

    if task.results is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No results available"
        )

    return SimulationResultsResponse(**{**task.results, "completed_at": task.completed_at})


@router.get("/{task_id}/stream")
async def stream_simulation_progress(
    task_id: str,
    store: SimulationTaskStore = Depends(get_task_store)
):
    """
    Stream simulation progress via Server-Sent Events (SSE).

    This allows real-time progress updates without polling.
    """
    _get_task_or_404(store, task_id)

    async def event_generator():
        while True:
            current_task = store.get_by_id(task_id)

            if current_task is None:
                yield f"data: {json.dumps({'error': 'Task not found'})}\n\n"
                break

            data = {
                "task_id": current_task.id,
                "status": current_task.status,
                "progress": current_task.progress
            }

            if current_task.error_message:
                data["error"] = current_task.error_message

            yield f"data: {json.dumps(data)}\n\n"

            if current_task.is_finished:
                break

            await asyncio.sleep(0.5)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
