from django.urls import path

from . import views

urlpatterns = [
    # Accounts
    path('api/auth/signup/', views.signup_api, name='signup_api'),
    path('api/auth/login/', views.login_api, name='login_api'),

    # Rooms
    path('api/rooms/', views.create_room_api, name='create_room_api'),
    path('api/rooms/<str:room_id>/join/', views.join_room_api, name='join_room_api'),
    path('api/rooms/<str:room_id>/status/', views.room_status_api, name='room_status_api'),
    path('api/rooms/<str:room_id>/session/', views.session_info_api, name='session_info_api'),
    path('api/rooms/<str:room_id>/conclusion/', views.submit_conclusion_api, name='submit_conclusion_api'),
    path('api/rooms/<str:room_id>/conclusion/from-chat/', views.conclude_from_chat_api, name='conclude_from_chat_api'),

    # Chat
    path('api/rooms/<str:room_id>/chat/init/', views.init_chat_api, name='init_chat_api'),
    path('api/rooms/<str:room_id>/chat/', views.send_message_api, name='send_message_api'),
    path('api/rooms/<str:room_id>/chat/history/', views.chat_history_api, name='chat_history_api'),

    # Comparison
    path('api/rooms/<str:room_id>/compare/', views.compare_room_api, name='compare_room_api'),
]
