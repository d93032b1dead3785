import os
import shutil
import tempfile
from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings

from accounts.models import Role
from notifications.models import Notification, NotificationType
from projects.models import Project
from .context import ActionContext
from .ledger import (
    TimeLedger, daily_hours, duration_minutes, manual_duration, round_half_up,
    task_hours, to_csv, total_hours,
)
from .metrics import (
    analytics_report_csv, completion_rate, department_rollups, employee_rollups,
    extremes, kpis, performance_rating, priority_distribution, rollup,
    status_distribution, workload_tier, workloads,
)
from .models import Comment, FileAttachment, Subtask, Task, TaskPriority, TaskStatus, TimeEntry
from .risk import AT_RISK_THRESHOLD, at_risk_tasks, score_tasks, task_risk_score
from .services import TaskLifecycleService, parse_mentions
from .store import TaskStore
from .temporal import is_due_soon, is_overdue

User = get_user_model()

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=dt_timezone.utc)


def make_user(email, role=Role.EMPLOYEE, **extra):
    extra.setdefault('first_name', email.split('@')[0].title())
    extra.setdefault('last_name', 'Tester')
    return User.objects.create_user(email=email, password='testpass123', role=role, **extra)


def make_project(creator, name='Payroll', department='finance', **extra):
    return Project.objects.create(name=name, department=department, created_by=creator, **extra)


def make_task(project, title='Task', **fields):
    return Task.objects.create(project=project, title=title, **fields)


class TemporalClassifierTest(TestCase):
    def setUp(self):
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.project = make_project(self.manager)

    def test_done_task_is_never_overdue(self):
        task = make_task(self.project, status=TaskStatus.DONE, due_date=NOW - timedelta(days=30))
        for now in (NOW, NOW + timedelta(days=365), NOW - timedelta(days=365)):
            self.assertFalse(is_overdue(task, now))

    def test_past_due_date_is_overdue(self):
        task = make_task(self.project, due_date=NOW - timedelta(minutes=1))
        self.assertTrue(is_overdue(task, NOW))
        self.assertFalse(is_due_soon(task, NOW))

    def test_due_soon_window_is_exclusive_on_both_ends(self):
        inside = make_task(self.project, due_date=NOW + timedelta(days=2))
        at_now = make_task(self.project, due_date=NOW)
        at_edge = make_task(self.project, due_date=NOW + timedelta(days=3))
        self.assertTrue(is_due_soon(inside, NOW))
        self.assertFalse(is_due_soon(at_now, NOW))
        self.assertFalse(is_due_soon(at_edge, NOW))

    def test_task_without_due_date_is_neither(self):
        task = make_task(self.project)
        self.assertFalse(is_overdue(task, NOW))
        self.assertFalse(is_due_soon(task, NOW))


class RiskScorerTest(TestCase):
    def setUp(self):
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.project = make_project(self.manager)

    def test_every_signal_at_once_is_capped_at_100(self):
        task = make_task(
            self.project,
            status=TaskStatus.BLOCKED,
            priority=TaskPriority.URGENT,
            due_date=NOW - timedelta(seconds=1),
        )
        # blocked tasks are not stalled; in progress ones are
        self.assertEqual(task_risk_score(task, NOW), 100)

        task.status = TaskStatus.IN_PROGRESS
        self.assertEqual(task_risk_score(task, NOW), 95)

    def test_overdue_high_priority_stalled_task_scores_85(self):
        task = make_task(
            self.project,
            status=TaskStatus.IN_PROGRESS,
            priority=TaskPriority.HIGH,
            due_date=NOW - timedelta(days=1),
        )
        Subtask.objects.create(task=task, title='Draft')
        Subtask.objects.create(task=task, title='Review')

        self.assertEqual(task_risk_score(task, NOW), 85)
        self.assertIn(task, at_risk_tasks([task], NOW))

    def test_deadline_tiers_are_not_cumulative(self):
        low = {'priority': TaskPriority.LOW}
        within_day = make_task(self.project, due_date=NOW + timedelta(hours=12), **low)
        within_three = make_task(self.project, due_date=NOW + timedelta(days=2), **low)
        within_week = make_task(self.project, due_date=NOW + timedelta(days=5), **low)
        far = make_task(self.project, due_date=NOW + timedelta(days=30), **low)

        self.assertEqual(task_risk_score(within_day, NOW), 40)
        self.assertEqual(task_risk_score(within_three, NOW), 25)
        self.assertEqual(task_risk_score(within_week, NOW), 10)
        self.assertEqual(task_risk_score(far, NOW), 0)

    def test_progress_on_subtasks_clears_stalled_signal(self):
        task = make_task(self.project, status=TaskStatus.IN_PROGRESS, priority=TaskPriority.LOW)
        Subtask.objects.create(task=task, title='One', completed=True)
        Subtask.objects.create(task=task, title='Two', completed=True)
        Subtask.objects.create(task=task, title='Three')
        self.assertEqual(task_risk_score(task, NOW), 0)

    def test_scores_stay_within_bounds(self):
        for status in TaskStatus.values:
            for priority in TaskPriority.values:
                for offset in (-10, 0.5, 2, 6, 20):
                    task = Task(
                        project=self.project, title='probe', status=status, priority=priority,
                        due_date=NOW + timedelta(days=offset),
                    )
                    task.save()
                    self.assertTrue(0 <= task_risk_score(task, NOW) <= 100)

    def test_at_risk_list_excludes_done_and_sorts_descending(self):
        done = make_task(self.project, title='done', status=TaskStatus.DONE,
                         priority=TaskPriority.URGENT, due_date=NOW - timedelta(days=2))
        medium = make_task(self.project, title='medium', priority=TaskPriority.HIGH,
                           due_date=NOW + timedelta(days=2))
        quiet = make_task(self.project, title='quiet', priority=TaskPriority.LOW)
        worst = make_task(self.project, title='worst', priority=TaskPriority.URGENT,
                          due_date=NOW - timedelta(days=1))
        tie = make_task(self.project, title='tie', priority=TaskPriority.HIGH,
                        due_date=NOW + timedelta(days=2))

        scored = score_tasks([done, medium, quiet, worst, tie], NOW)

        self.assertEqual([task.title for task, _ in scored], ['worst', 'medium', 'tie'])
        self.assertEqual([score for _, score in scored], [80, 45, 45])
        self.assertTrue(all(score >= AT_RISK_THRESHOLD for _, score in scored))


class TimeLedgerTest(TestCase):
    def setUp(self):
        cache.clear()
        self.employee = make_user('worker@example.com')
        self.project = make_project(self.employee)
        self.task = make_task(self.project, assignee=self.employee)
        self.ledger = TimeLedger()

    def tearDown(self):
        cache.clear()

    def test_rounding_matches_half_up(self):
        self.assertEqual(round_half_up(1.5), 2)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.49), 0)
        self.assertEqual(duration_minutes(NOW, NOW + timedelta(seconds=90)), 2)

    def test_stopping_timer_after_90_seconds_logs_two_minutes(self):
        self.ledger.start_timer(self.task, ActionContext(self.employee, NOW))
        entry = self.ledger.stop_timer(ActionContext(self.employee, NOW + timedelta(seconds=90)))

        self.assertIsNotNone(entry)
        self.assertEqual(entry.duration, 2)
        self.assertEqual(entry.date, '2024-05-15')
        self.assertEqual(TimeEntry.objects.filter(task=self.task).count(), 1)
        self.assertIsNone(self.ledger.active_timer(self.employee))

    def test_immediate_stop_logs_nothing(self):
        self.ledger.start_timer(self.task, ActionContext(self.employee, NOW))
        entry = self.ledger.stop_timer(ActionContext(self.employee, NOW + timedelta(seconds=20)))

        self.assertIsNone(entry)
        self.assertFalse(TimeEntry.objects.exists())

    def test_stop_without_running_timer_is_a_no_op(self):
        self.assertIsNone(self.ledger.stop_timer(ActionContext(self.employee, NOW)))

    def test_second_start_keeps_the_running_timer(self):
        other = make_task(self.project, title='Other', assignee=self.employee)
        self.assertIsNotNone(self.ledger.start_timer(self.task, ActionContext(self.employee, NOW)))
        self.assertIsNone(self.ledger.start_timer(other, ActionContext(self.employee, NOW + timedelta(hours=2))))

        entry = self.ledger.stop_timer(ActionContext(self.employee, NOW + timedelta(hours=2, minutes=30)))

        self.assertEqual(entry.task, self.task)
        self.assertEqual(entry.duration, 150)
        self.assertFalse(TimeEntry.objects.filter(task=other).exists())

    def test_running_timer_is_shared_through_the_cache(self):
        self.ledger.start_timer(self.task, ActionContext(self.employee, NOW))
        session = TimeLedger().active_timer(self.employee)
        self.assertEqual(session.task_id, self.task.pk)
        self.assertEqual(session.start_time, NOW)

    def test_manual_entry(self):
        self.assertEqual(manual_duration(1, 30), 90)
        entry = self.ledger.log_manual(self.task, ActionContext(self.employee, NOW), hours=1, minutes=30)
        self.assertEqual(entry.duration, 90)
        self.assertEqual(self.task.actual_hours, 1.5)

    def test_empty_manual_entry_or_missing_task_is_ignored(self):
        context = ActionContext(self.employee, NOW)
        self.assertIsNone(self.ledger.log_manual(self.task, context, hours=0, minutes=0))
        self.assertIsNone(self.ledger.log_manual(None, context, hours=1))
        self.assertFalse(TimeEntry.objects.exists())

    def test_actual_hours_follow_entry_edits_and_deletes(self):
        context = ActionContext(self.employee, NOW)
        first = self.ledger.log_manual(self.task, context, minutes=60)
        self.ledger.log_manual(self.task, context, minutes=30)
        self.assertEqual(self.task.actual_hours, 1.5)

        self.ledger.update_entry(first.pk, duration=120)
        self.assertEqual(self.task.actual_hours, 2.5)
        self.assertIsNone(self.ledger.update_entry(first.pk, duration=0))

        self.ledger.delete_entry(first.pk)
        self.assertEqual(self.task.actual_hours, 0.5)
        self.assertEqual(total_hours([self.task]), 0.5)
        self.assertEqual(task_hours(self.task), self.task.actual_hours)

    def test_daily_chart_covers_trailing_week(self):
        context = ActionContext(self.employee, NOW)
        self.ledger.log_manual(self.task, context, minutes=90, day='2024-05-15')
        self.ledger.log_manual(self.task, context, minutes=45, day='2024-05-10')
        self.ledger.log_manual(self.task, context, minutes=600, day='2024-05-01')

        chart = daily_hours(TimeEntry.objects.all(), date(2024, 5, 15))

        self.assertEqual(len(chart), 7)
        self.assertEqual(chart[0]['date'], '2024-05-09')
        self.assertEqual(chart[-1], {'date': '2024-05-15', 'label': 'Wed', 'hours': 1.5})
        self.assertEqual(chart[1]['hours'], 0.8)
        self.assertAlmostEqual(sum(day['hours'] for day in chart), 2.3)

    def test_csv_export_quotes_text_fields(self):
        task = make_task(self.project, title='Say "hi"')
        self.ledger.log_manual(task, ActionContext(self.employee, NOW), minutes=15, notes='call, then email')

        lines = to_csv(TimeEntry.objects.all()).split('\n')

        self.assertEqual(lines[0], 'Date,Task,User,Duration (minutes),Notes')
        self.assertEqual(lines[1], '2024-05-15,"Say ""hi""","Worker Tester",15,"call, then email"')


class TaskLifecycleServiceTest(TestCase):
    def setUp(self):
        self.admin = make_user('admin@example.com', Role.ADMIN)
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.other_manager = make_user('second@example.com', Role.MANAGEMENT)
        make_user('retired@example.com', Role.MANAGEMENT, is_active=False)
        self.employee = make_user('worker@example.com', first_name='Sam')
        self.project = make_project(self.manager)
        self.service = TaskLifecycleService()
        self.task = self.service.create_task(
            ActionContext(self.manager, NOW),
            title='Quarterly report',
            project=self.project,
            assignee=self.employee,
            status=TaskStatus.IN_PROGRESS,
        )

    def test_create_notifies_assignee(self):
        notification = Notification.objects.get(user=self.employee)
        self.assertEqual(notification.type, NotificationType.TASK_ASSIGNED)
        self.assertEqual(notification.from_user, self.manager)
        self.assertEqual(self.task.created_by, self.manager)

    def test_create_with_empty_title_is_ignored(self):
        context = ActionContext(self.manager, NOW)
        self.assertIsNone(self.service.create_task(context, title='   ', project=self.project))

    def test_employee_review_request_reaches_every_active_reviewer(self):
        later = NOW + timedelta(hours=1)
        self.service.set_status(self.task, TaskStatus.REVIEW, ActionContext(self.employee, later))

        requests = Notification.objects.filter(type=NotificationType.REVIEW_REQUEST)
        self.assertEqual(requests.count(), 3)
        self.assertEqual(
            set(requests.values_list('user__email', flat=True)),
            {'admin@example.com', 'manager@example.com', 'second@example.com'},
        )
        self.assertEqual(requests.first().title, 'Task Ready for Review')

    def test_manager_review_transition_sends_no_review_request(self):
        self.service.set_status(self.task, TaskStatus.REVIEW, ActionContext(self.admin, NOW))
        self.assertFalse(Notification.objects.filter(type=NotificationType.REVIEW_REQUEST).exists())
        self.assertTrue(Notification.objects.filter(
            user=self.employee, type=NotificationType.STATUS_CHANGE
        ).exists())

    def test_done_stamps_completed_at_and_reopen_keeps_it(self):
        done_at = NOW + timedelta(days=1)
        task = self.service.set_status(self.task, TaskStatus.DONE, ActionContext(self.manager, done_at))
        self.assertEqual(task.completed_at, done_at)
        self.assertEqual(task.updated_at, done_at)

        reopened_at = NOW + timedelta(days=2)
        task = self.service.set_status(task, TaskStatus.TODO, ActionContext(self.manager, reopened_at))
        self.assertEqual(task.status, TaskStatus.TODO)
        self.assertEqual(task.completed_at, done_at)
        self.assertEqual(task.updated_at, reopened_at)

    def test_same_status_is_a_no_op(self):
        self.assertIsNone(self.service.set_status(self.task, TaskStatus.IN_PROGRESS, ActionContext(self.manager, NOW)))

    def test_unknown_status_raises(self):
        with self.assertRaises(ValueError):
            self.service.set_status(self.task, 'archived', ActionContext(self.manager, NOW))

    def test_reassignment_notifies_new_assignee(self):
        self.service.update_task(self.task, ActionContext(self.manager, NOW), assignee=self.other_manager)
        self.assertTrue(Notification.objects.filter(
            user=self.other_manager, type=NotificationType.TASK_ASSIGNED
        ).exists())

    def test_comment_mentions_notify_resolved_users(self):
        self.assertEqual(parse_mentions('hey @sam and @manager!'), ['sam', 'manager'])
        comment = self.service.add_comment(
            self.task, ActionContext(self.manager, NOW), 'hey @sam and @manager, also @nobody'
        )

        self.assertEqual(comment.mentions, ['sam', 'manager', 'nobody'])
        mentions = Notification.objects.filter(type=NotificationType.COMMENT_MENTION)
        # the author is never notified about their own mention
        self.assertEqual(list(mentions.values_list('user', flat=True)), [self.employee.pk])

    def test_empty_comment_and_subtask_are_ignored(self):
        context = ActionContext(self.manager, NOW)
        self.assertIsNone(self.service.add_comment(self.task, context, '  '))
        self.assertIsNone(self.service.add_subtask(self.task, context, ''))
        self.assertFalse(Comment.objects.exists())

    def test_toggle_subtask(self):
        context = ActionContext(self.employee, NOW)
        subtask = self.service.add_subtask(self.task, context, 'Collect figures')
        self.assertTrue(self.service.toggle_subtask(self.task, subtask.pk, context).completed)
        self.assertFalse(self.service.toggle_subtask(self.task, subtask.pk, context).completed)
        self.assertIsNone(self.service.toggle_subtask(self.task, 9999, context))


class TaskStoreCascadeTest(TestCase):
    def setUp(self):
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.employee = make_user('worker@example.com')
        self.store = TaskStore()

    def test_deleting_project_removes_all_tasks(self):
        project = make_project(self.manager)
        for i in range(10):
            make_task(project, title=f'task {i}', status=TaskStatus.DONE if i < 4 else TaskStatus.TODO)
        self.assertEqual(completion_rate(project.tasks.all()), 40)

        self.assertTrue(self.store.delete_project(project.pk))
        self.assertFalse(Task.objects.exists())
        self.assertFalse(Project.objects.exists())
        self.assertFalse(self.store.delete_project(project.pk))

    def test_deleting_user_removes_their_work(self):
        project = make_project(self.manager)
        assigned = make_task(project, title='theirs', assignee=self.employee)
        kept = make_task(project, title='someone else', assignee=self.manager)
        Comment.objects.create(task=kept, author=self.employee, content='note')
        TimeEntry.objects.create(task=kept, user=self.employee, start_time=NOW, duration=5, date='2024-05-15')
        Notification.objects.create(user=self.employee, type=NotificationType.TASK_ASSIGNED, title='t', message='m')

        self.assertTrue(self.store.delete_user(self.employee.pk))

        self.assertFalse(Task.objects.filter(pk=assigned.pk).exists())
        self.assertTrue(Task.objects.filter(pk=kept.pk).exists())
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(TimeEntry.objects.exists())
        self.assertFalse(Notification.objects.exists())
        self.assertIsNone(self.store.users.get(self.employee.pk))

    def test_cascades_remove_stored_attachment_files(self):
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        with override_settings(MEDIA_ROOT=media_root):
            project = make_project(self.manager)
            task = make_task(project, title='with file', assignee=self.manager)
            on_task = FileAttachment.objects.create(
                task=task, uploaded_by=self.manager, file=SimpleUploadedFile('report.txt', b'totals')
            )
            other = make_task(project, title='other', assignee=self.manager)
            by_user = FileAttachment.objects.create(
                task=other, uploaded_by=self.employee, file=SimpleUploadedFile('notes.txt', b'notes')
            )
            task_path, user_path = on_task.file.path, by_user.file.path
            self.assertTrue(os.path.exists(task_path))

            self.store.delete_task(task.pk)
            self.store.delete_user(self.employee.pk)

            self.assertFalse(os.path.exists(task_path))
            self.assertFalse(os.path.exists(user_path))
            self.assertFalse(FileAttachment.objects.exists())

    def test_missing_records_are_reported(self):
        self.assertIsNone(self.store.tasks.get(12345))
        self.assertIsNone(self.store.tasks.update(12345, title='x'))
        self.assertFalse(self.store.delete_task(12345))
        self.assertFalse(self.store.delete_user(12345))


class MetricsTest(TestCase):
    def setUp(self):
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.ana = make_user('ana@example.com', position='Analyst', department='finance')
        self.ben = make_user('ben@example.com', position='Agent', department='call_center')
        self.finance = make_project(self.manager, department='finance')
        self.calls = make_project(self.manager, name='Hotline', department='call_center')

    def test_completion_rate(self):
        self.assertEqual(completion_rate([]), 0)
        tasks = [make_task(self.finance, title=str(i)) for i in range(3)]
        rates = []
        for task in tasks:
            task.status = TaskStatus.DONE
            rates.append(completion_rate(tasks))
        self.assertEqual(rates, [33, 67, 100])

    def test_rollups_and_extremes(self):
        make_task(self.finance, assignee=self.ana, status=TaskStatus.DONE)
        make_task(self.finance, assignee=self.ana, status=TaskStatus.IN_PROGRESS)
        overdue = make_task(self.calls, assignee=self.ben, due_date=NOW - timedelta(days=1))
        TimeEntry.objects.create(task=overdue, user=self.ben, start_time=NOW, duration=75, date='2024-05-15')
        tasks = Task.objects.all()

        departments = department_rollups([('finance', 'Finance'), ('call_center', 'Call Center')], tasks, NOW)
        self.assertEqual(departments[0], {
            'name': 'Finance', 'code': 'finance', 'total': 2, 'done': 1, 'in_progress': 1,
            'overdue': 0, 'completion_rate': 50, 'hours': 0,
        })
        self.assertEqual(departments[1]['overdue'], 1)
        self.assertEqual(departments[1]['hours'], 1.3)

        employees = employee_rollups([self.ana, self.ben], tasks, NOW)
        picked = extremes(employees)
        self.assertEqual(picked['needs_attention']['id'], self.ben.pk)
        self.assertEqual(picked['best_performing']['id'], self.ana.pk)
        self.assertEqual(extremes([]), {'needs_attention': None, 'best_performing': None})

    def test_rollup_of_nothing(self):
        row = rollup('Empty', [], NOW)
        self.assertEqual(row['total'], 0)
        self.assertEqual(row['completion_rate'], 0)

    def test_performance_rating_bands(self):
        self.assertEqual(performance_rating(80), 'Excellent')
        self.assertEqual(performance_rating(60), 'Good')
        self.assertEqual(performance_rating(40), 'Average')
        self.assertEqual(performance_rating(39), 'Needs Attention')

    def test_workload_tiers(self):
        self.assertEqual(workload_tier(6), 'High')
        self.assertEqual(workload_tier(5), 'Medium')
        self.assertEqual(workload_tier(4), 'Medium')
        self.assertEqual(workload_tier(3), 'Light')

        for i in range(6):
            make_task(self.finance, title=str(i), assignee=self.ana,
                      priority=TaskPriority.URGENT if i < 2 else TaskPriority.LOW)
        make_task(self.finance, title='finished', assignee=self.ana, status=TaskStatus.DONE)

        row = workloads([self.ana], Task.objects.all())[0]
        self.assertEqual((row['active'], row['urgent'], row['tier']), (6, 2, 'High'))

    def test_kpis_and_distributions(self):
        created = NOW - timedelta(hours=10)
        make_task(self.finance, status=TaskStatus.DONE, created_at=created, completed_at=NOW)
        make_task(self.finance, status=TaskStatus.IN_PROGRESS, priority=TaskPriority.URGENT)
        tasks = Task.objects.all()

        summary = kpis(tasks, Project.objects.all(), NOW)
        self.assertEqual(summary['total_tasks'], 2)
        self.assertEqual(summary['completion_rate'], 50)
        self.assertEqual(summary['active_projects'], 2)
        self.assertEqual(summary['average_completion_hours'], 10)

        statuses = {row['status']: row['value'] for row in status_distribution(tasks)}
        self.assertEqual(statuses, {'todo': 0, 'in_progress': 1, 'review': 0, 'done': 1, 'blocked': 0})
        priorities = [row['priority'] for row in priority_distribution(tasks)]
        self.assertEqual(priorities, ['urgent', 'high', 'medium', 'low'])

    def test_analytics_report_layout(self):
        make_task(self.finance, assignee=self.ana, status=TaskStatus.DONE)
        tasks = Task.objects.all()
        summary = kpis(tasks, Project.objects.all(), NOW)
        departments = department_rollups([('finance', 'Finance')], tasks, NOW)
        employees = employee_rollups([self.ana], tasks, NOW)

        lines = analytics_report_csv(summary, departments, employees, date(2024, 5, 15)).split('\n')

        self.assertEqual(lines[1], 'Generated:,2024-05-15')
        self.assertIn('Completion Rate,100%', lines)
        self.assertIn('Total Hours Logged,0.0h', lines)
        self.assertIn('Finance,1,1,100%,0.0h', lines)
        self.assertEqual(lines[-1], 'Ana Tester,Analyst,1,1,100%,0.0h')


# ------------------------------------------------------------------------views.py tests
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status


class TaskViewsTest(APITestCase):
    def setUp(self):
        cache.clear()
        self.manager = make_user('manager@example.com', Role.MANAGEMENT)
        self.employee = make_user('worker@example.com')
        self.outsider = make_user('outsider@example.com')
        self.project = make_project(self.manager)
        self.task = make_task(self.project, title='Close books', assignee=self.employee, created_by=self.manager)

    def tearDown(self):
        cache.clear()

    def test_manager_creates_task(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post(reverse('task-list-create'), {
            'title': 'Audit', 'project': self.project.pk, 'assignee': self.employee.pk,
            'priority': 'high', 'tags': ['finance'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.manager.pk)
        self.assertEqual(response.data['risk_score'], 20)
        self.assertEqual(Notification.objects.filter(user=self.employee).count(), 1)

    def test_employee_cannot_create_task(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('task-list-create'), {
            'title': 'Sneaky', 'project': self.project.pk,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_priority_is_rejected(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post(reverse('task-list-create'), {
            'title': 'Bad', 'project': self.project.pk, 'priority': 'critical',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employees_only_see_their_tasks(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(reverse('task-list-create'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 0)

        self.client.force_authenticate(user=self.employee)
        response = self.client.get(reverse('task-list-create'))
        self.assertEqual([row['id'] for row in response.data], [self.task.pk])

    def test_assignee_changes_status(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.patch(reverse('task-status', args=[self.task.pk]), {'status': 'review'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'review')
        self.assertTrue(Notification.objects.filter(
            user=self.manager, type=NotificationType.REVIEW_REQUEST
        ).exists())

    def test_outsider_cannot_change_status(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.patch(reverse('task-status', args=[self.task.pk]), {'status': 'done'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_task_is_404(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.patch(reverse('task-status', args=[9999]), {'status': 'done'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_cannot_delete_task(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.delete(reverse('task-detail', args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.manager)
        response = self.client.delete(reverse('task-detail', args=[self.task.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Task.objects.filter(pk=self.task.pk).exists())

    def test_comment_endpoint(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post(
            reverse('comment-list-create', args=[self.task.pk]), {'content': 'Ping @worker'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['mentions'], ['worker'])

        response = self.client.get(reverse('comment-list-create', args=[self.task.pk]))
        self.assertEqual(len(response.data), 1)

    def test_subtask_endpoints(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('subtask-list-create', args=[self.task.pk]), {'title': 'Step'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(reverse('subtask-toggle', args=[self.task.pk, response.data['id']]))
        self.assertTrue(response.data['completed'])

    def test_manual_time_entry_endpoint(self):
        self.client.force_authenticate(user=self.employee)
        url = reverse('time-entry-list-create')

        response = self.client.post(url, {'task': self.task.pk, 'hours': 1, 'minutes': 30}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['duration'], 90)

        response = self.client.post(url, {'task': self.task.pk, 'hours': 0, 'minutes': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(TimeEntry.objects.count(), 1)

    def test_outsider_cannot_log_time(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.post(reverse('time-entry-list-create'), {'task': self.task.pk, 'minutes': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_timer_round_trip_discards_zero_length_session(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('timer'), {'task': self.task.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['timer']['task_id'], self.task.pk)

        response = self.client.get(reverse('timer'))
        self.assertIsNotNone(response.data['timer'])

        response = self.client.post(reverse('timer-stop'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['entry'])
        self.assertFalse(TimeEntry.objects.exists())

    def test_starting_a_second_timer_is_rejected(self):
        other = make_task(self.project, title='Reconcile', assignee=self.employee)
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('timer'), {'task': self.task.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(reverse('timer'), {'task': other.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('timer'))
        self.assertEqual(response.data['timer']['task_id'], self.task.pk)

    def test_task_search_matches_title_and_description(self):
        make_task(self.project, title='Payroll run', description='Send the MONTHLY slips')
        make_task(self.project, title='Monthly audit')
        make_task(self.project, title='Hire clerk')
        self.client.force_authenticate(user=self.manager)

        response = self.client.get(reverse('task-list-create'), {'search': 'monthly'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(t['title'] for t in response.data), ['Monthly audit', 'Payroll run'])

    def test_time_entry_export(self):
        TimeEntry.objects.create(task=self.task, user=self.employee, start_time=NOW, duration=30,
                                 notes='', date='2024-05-15')
        self.client.force_authenticate(user=self.employee)
        response = self.client.get(reverse('time-entry-export'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertEqual(
            response.content.decode().split('\n')[1],
            '2024-05-15,"Close books","Worker Tester",30,""'
        )

    def test_time_entry_update_rejects_zero_duration(self):
        entry = TimeEntry.objects.create(task=self.task, user=self.employee, start_time=NOW, duration=30, date='2024-05-15')
        self.client.force_authenticate(user=self.employee)
        url = reverse('time-entry-detail', args=[entry.pk])

        response = self.client.patch(url, {'duration': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'duration': 45}, format='json')
        self.assertEqual(response.data['duration'], 45)

        response = self.client.patch(url, {'date': '15/05/2024'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(url, {'date': '2024-05-14'}, format='json')
        self.assertEqual(response.data['date'], '2024-05-14')
        self.assertEqual(TimeEntry.objects.get(pk=entry.pk).date, '2024-05-14')

        self.client.force_authenticate(user=self.outsider)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

    def test_at_risk_endpoint(self):
        make_task(self.project, title='fine', assignee=self.employee, priority=TaskPriority.LOW)
        self.task.priority = TaskPriority.URGENT
        self.task.status = TaskStatus.BLOCKED
        self.task.save()

        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('task-at-risk'))

        self.assertEqual([row['id'] for row in response.data], [self.task.pk])
        self.assertEqual(response.data[0]['risk_score'], 50)

    def test_statistics_endpoint(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.get(reverse('task-stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['kpis']['total_tasks'], 1)
        self.assertEqual(response.data['kpis']['active_projects'], 1)

    def test_analytics_restricted_to_management(self):
        self.client.force_authenticate(user=self.employee)
        self.assertEqual(self.client.get(reverse('analytics-employees')).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('analytics-employees'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({row['id'] for row in response.data['employees']}, {self.employee.pk, self.outsider.pk})

        response = self.client.get(reverse('analytics-report'))
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('DEPARTMENT PERFORMANCE', response.content.decode())

    def test_workload_endpoint(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('analytics-workload'))
        rows = {row['id']: row for row in response.data}
        self.assertEqual(rows[self.employee.pk]['active'], 1)
        self.assertEqual(rows[self.employee.pk]['tier'], 'Light')
