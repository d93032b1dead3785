from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Role
from .models import DEFAULT_DEPARTMENTS, Department

User = get_user_model()


class DepartmentModelTest(TestCase):
    def test_defaults_are_seeded(self):
        codes = set(Department.objects.values_list('code', flat=True))
        self.assertTrue({code for code, _, _ in DEFAULT_DEPARTMENTS} <= codes)

    def test_ensure_defaults_is_idempotent(self):
        before = Department.objects.count()
        Department.objects.ensure_defaults()
        self.assertEqual(Department.objects.count(), before)

    def test_label_for(self):
        self.assertEqual(Department.label_for('call_center'), 'Call Center')
        self.assertEqual(Department.label_for('unknown'), 'unknown')


class DepartmentViewsTest(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', role=Role.ADMIN)
        self.manager = User.objects.create_user(
            email='manager@example.com', password='testpass123', role=Role.MANAGEMENT
        )

    def test_everyone_can_list(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('department-list-create'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), Department.objects.count())

    def test_only_admins_change_departments(self):
        payload = {'code': 'legal', 'name': 'Legal', 'color': '#112233'}

        self.client.force_authenticate(user=self.manager)
        response = self.client.post(reverse('department-list-create'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse('department-list-create'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_bad_color_is_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            reverse('department-list-create'), {'code': 'legal', 'name': 'Legal', 'color': 'red'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
