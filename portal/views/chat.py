from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.serializers.chat import ChatListQuerySerializer, ChatMessageCreateSerializer, ChatMessageSerializer
from portal.services.chat import list_messages, post_message


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def chat_messages(request):
    q = ChatListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = list_messages(request.user, q.validated_data.get('doctorId'))
    return Response(ChatMessageSerializer(qs, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def chat_message_create(request):
    """Store a message in the caller's own conversation.  No AI call, no broadcast."""
    s = ChatMessageCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = s.validated_data.get('doctorId')
    try:
        msg = post_message(
            request.user,
            s.validated_data['message'],
            doctor=doctor,
            message_type=s.validated_data.get('messageType') or 'text',
        )
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response(ChatMessageSerializer(msg).data, status=201)
