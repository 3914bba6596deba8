import copy

import pytest

from banksampah.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from banksampah.pricing import PricingTable
from banksampah.storage import SUBMISSIONS, JsonFileStore
from banksampah.submissions import (SubmissionLifecycle, SubmissionStatus, TRANSITIONS, apply_transition,
                                    annotate_submission, cancel_submission, create_submission,
                                    find_submission)

SCHEDULE = '2025-01-10T09:00:00'


def new_submission(user, pricing, weight=2.0, waste_type='Botol Plastik', submissions=None):
    return create_submission(
        submissions or [], user, waste_type, weight, 'dana',
        'Jl. Melati No. 123, Semarang Barat', SCHEDULE, pricing=pricing)


def move(submission, actor, *statuses, **kwargs):
    for status in statuses:
        apply_transition(submission, status, actor, **kwargs)
    return submission


def test_create_computes_estimated_figures(budi_user, pricing):
    submission = new_submission(budi_user, pricing)

    assert submission['status'] == 'pending'
    assert submission['price_per_kg'] == 3000
    assert submission['estimated_value'] == pytest.approx(6000)
    assert submission['platform_fee'] == pytest.approx(600)
    assert submission['estimated_transfer'] == pytest.approx(5400)
    assert submission['ewallet_account'] == '081298765432'
    assert len(submission['status_history']) == 1
    assert submission['status_history'][0]['status'] == 'pending'
    assert submission['status_history'][0]['updated_by'] == 2


def test_create_picks_next_id(budi_user, pricing):
    existing = [{'id': 4}, {'id': 9}]
    assert new_submission(budi_user, pricing, submissions=existing)['id'] == 10


def test_create_rejects_unknown_waste_type(budi_user, pricing):
    with pytest.raises(ValidationError):
        new_submission(budi_user, pricing, waste_type='Styrofoam')


@pytest.mark.parametrize('weight', [0.05, 0, -1, 100.5])
def test_create_rejects_weight_out_of_range(budi_user, pricing, weight):
    with pytest.raises(ValidationError):
        new_submission(budi_user, pricing, weight=weight)


@pytest.mark.parametrize('weight', [0.1, 100])
def test_create_accepts_weight_bounds(budi_user, pricing, weight):
    assert new_submission(budi_user, pricing, weight=weight)['estimated_weight'] == weight


def test_create_requires_registered_ewallet(budi_user, pricing):
    with pytest.raises(ValidationError):
        create_submission([], budi_user, 'Kardus', 3, 'ovo',
                          'Jl. Melati No. 123, Semarang Barat', SCHEDULE, pricing=pricing)


def test_verify_recomputes_actual_figures(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, 'confirmed', 'picked_up')
    history_before = len(submission['status_history'])

    apply_transition(submission, 'verified', admin, note='Ditimbang', actual_weight=1.8, pricing=pricing)

    assert submission['status'] == 'verified'
    assert submission['actual_weight'] == 1.8
    assert submission['actual_value'] == pytest.approx(5400)
    assert submission['platform_fee'] == pytest.approx(540)
    assert submission['actual_transfer'] == pytest.approx(4860)
    assert submission['verification_time'] is not None
    assert len(submission['status_history']) == history_before + 1
    assert submission['status_history'][-1] == {
        'status': 'verified',
        'timestamp': submission['updated_at'],
        'note': 'Ditimbang',
        'updated_by': admin.id,
    }


def test_actual_figures_use_snapshotted_price(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, 'confirmed', 'picked_up')
    repriced = PricingTable(prices={'Botol Plastik': 9999}, fee_rate=0.10)

    apply_transition(submission, 'processed', admin, actual_weight=2, pricing=repriced)

    assert submission['actual_value'] == pytest.approx(6000)


def test_full_lifecycle_stamps_times(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, 'confirmed', 'picked_up')
    apply_transition(submission, 'verified', admin, actual_weight=2.0)
    apply_transition(submission, 'completed', admin)

    assert submission['status'] == 'completed'
    for field in ('confirmed_at', 'pickup_time', 'verification_time', 'transfer_time'):
        assert submission[field]
    assert [h['status'] for h in submission['status_history']] == [
        'pending', 'confirmed', 'picked_up', 'verified', 'completed']


def test_pickup_records_driver(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, 'confirmed')
    apply_transition(submission, 'picked_up', admin, pickup_driver='DRV-01')
    assert submission['pickup_driver'] == 'DRV-01'


@pytest.mark.parametrize('terminal', ['completed', 'cancelled'])
@pytest.mark.parametrize('target', [s.value for s in SubmissionStatus])
def test_terminal_states_accept_nothing(budi_user, pricing, admin, terminal, target):
    submission = new_submission(budi_user, pricing)
    if terminal == 'completed':
        move(submission, admin, 'confirmed', 'picked_up', 'verified', 'completed')
    else:
        move(submission, admin, 'cancelled')

    with pytest.raises(InvalidTransitionError):
        apply_transition(submission, target, admin)


def test_transition_outside_table_is_rejected(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(InvalidTransitionError):
        apply_transition(submission, 'completed', admin)


def test_pickup_requires_confirmation(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(InvalidTransitionError):
        apply_transition(submission, 'picked_up', admin)
    assert submission['status'] == 'pending'
    assert len(submission['status_history']) == 1


def test_unknown_status_is_rejected(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(InvalidTransitionError):
        apply_transition(submission, 'shipped', admin)


def test_rejected_transition_leaves_record_untouched(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, 'confirmed', 'picked_up')
    before = copy.deepcopy(submission)

    with pytest.raises(ValidationError):
        apply_transition(submission, 'verified', admin, actual_weight=-3)

    assert submission == before


def test_actual_weight_only_on_weighing(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(ValidationError):
        apply_transition(submission, 'confirmed', admin, actual_weight=1.5)


def test_non_admin_cannot_drive_transitions(budi_user, pricing, budi):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(ForbiddenError):
        apply_transition(submission, 'confirmed', budi)


def test_owner_cancels_pending(budi_user, pricing, budi):
    submission = new_submission(budi_user, pricing)
    cancel_submission(submission, budi)

    assert submission['status'] == 'cancelled'
    assert submission['cancelled_at']
    assert submission['status_history'][-1]['updated_by'] == budi.id


def test_cancel_requires_owner(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    with pytest.raises(ForbiddenError):
        cancel_submission(submission, admin)


@pytest.mark.parametrize('statuses', [
    ('confirmed',), ('confirmed', 'picked_up'), ('confirmed', 'picked_up', 'verified')])
def test_cancel_requires_pending(budi_user, pricing, admin, budi, statuses):
    submission = new_submission(budi_user, pricing)
    move(submission, admin, *statuses)
    with pytest.raises(ForbiddenError):
        cancel_submission(submission, budi)


def test_every_non_terminal_state_can_be_cancelled_by_admin():
    for state, targets in TRANSITIONS.items():
        if targets:
            assert SubmissionStatus.CANCELLED in targets, state


def test_annotate_refused_once_terminal(budi_user, pricing, admin):
    submission = new_submission(budi_user, pricing)
    annotate_submission(submission, admin_notes='Hubungi dulu')
    assert submission['admin_notes'] == 'Hubungi dulu'

    move(submission, admin, 'cancelled')
    with pytest.raises(InvalidTransitionError):
        annotate_submission(submission, admin_notes='Terlambat')


def test_find_submission_scoped_to_owner(budi_user, pricing):
    submission = new_submission(budi_user, pricing)
    assert find_submission([submission], submission['id'], user_id=2) is submission
    with pytest.raises(NotFoundError):
        find_submission([submission], submission['id'], user_id=3)


def test_lifecycle_persists_changes(tmp_path, budi_user, admin):
    store = JsonFileStore(str(tmp_path))
    store.init()
    lifecycle = SubmissionLifecycle(store)

    created = lifecycle.create(
        budi_user, waste_type='Kardus', estimated_weight=5, ewallet_type='dana',
        pickup_address='Jl. Melati No. 123, Semarang Barat', pickup_schedule=SCHEDULE)
    lifecycle.transition(created['id'], 'confirmed', admin)
    lifecycle.transition(created['id'], 'picked_up', admin)
    lifecycle.transition(created['id'], 'verified', admin, actual_weight=4.5)

    saved = store.load(SUBMISSIONS)
    assert len(saved) == 1
    assert saved[0]['status'] == 'verified'
    assert saved[0]['actual_transfer'] == pytest.approx(8100)
    assert len(saved[0]['status_history']) == 4


def test_lifecycle_does_not_save_rejected_change(tmp_path, budi_user, admin):
    store = JsonFileStore(str(tmp_path))
    store.init()
    lifecycle = SubmissionLifecycle(store)
    created = lifecycle.create(
        budi_user, waste_type='Kardus', estimated_weight=5, ewallet_type='dana',
        pickup_address='Jl. Melati No. 123, Semarang Barat', pickup_schedule=SCHEDULE)

    with pytest.raises(InvalidTransitionError):
        lifecycle.transition(created['id'], 'completed', admin)

    assert store.load(SUBMISSIONS)[0]['status'] == 'pending'
