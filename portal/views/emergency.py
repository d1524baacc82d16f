from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.models import EmergencyLog
from portal.permissions import IsResponder
from portal.serializers.emergency import EmergencyLogSerializer, ResolveEmergencySerializer
from portal.services.emergencies import (
    list_active_emergencies, list_emergencies, record_emergency, resolve_emergency,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def emergencies(request):
    if request.method == 'GET':
        return Response(EmergencyLogSerializer(list_emergencies(request.user), many=True).data)

    s = EmergencyLogSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    # REST callers always log for themselves
    vd = dict(s.validated_data, user=request.user)
    if not vd.get('emergency_contact'):
        vd['emergency_contact'] = request.user.emergency_contact
    emergency = record_emergency(vd, actor=request.user)
    return Response(EmergencyLogSerializer(emergency).data, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsResponder])
def active_emergencies(request):
    return Response(EmergencyLogSerializer(list_active_emergencies(), many=True).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsResponder])
def emergency_resolve(request, emergency_id):
    s = ResolveEmergencySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        emergency = EmergencyLog.objects.get(id=emergency_id)
    except EmergencyLog.DoesNotExist:
        return Response({'ok': False, 'detail': 'emergency not found'}, status=404)
    try:
        emergency = resolve_emergency(emergency, actor=request.user, assigned_doctor=s.validated_data.get('assignedDoctorId'))
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=409)
    return Response(EmergencyLogSerializer(emergency).data)
