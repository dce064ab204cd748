"""
自定義異常類別

集中管理所有業務邏輯異常，方便 RoomManager 統一處理：
- notify = True：私訊 error 給發出事件的連線
- notify = False：安靜地忽略（非 Host、格式錯誤、未知 Topic 等都一樣）
"""


class AuctionException(Exception):
    """所有拍賣異常的基類"""
    notify = False


# ============ Join 相關異常（會通知客戶端）============

class RoomCodeRequired(AuctionException):
    """加入時沒有提供房間代碼"""
    notify = True

    def __init__(self):
        super().__init__("Room code required.")


class RoomLocked(AuctionException):
    """房間已鎖定，而且不允許鎖定後加入"""
    notify = True

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__("Room is locked.")


# ============ Room 相關異常 ============

class RoomNotFound(AuctionException):
    """房間不存在"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


# ============ 權限相關異常（安靜忽略）============

class NotJoined(AuctionException):
    """連線還沒成功 join 任何房間"""
    def __init__(self, participant_id):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} has not joined a room")


class ParticipantNotInRoom(AuctionException):
    """參與者不在這個房間"""
    def __init__(self, participant_id, room_id):
        self.participant_id = participant_id
        self.room_id = room_id
        super().__init__(f"Participant {participant_id} is not in room {room_id}")


class NotRoomHost(AuctionException):
    """非 Host 發出 Host 專屬事件"""
    def __init__(self, participant_id, room_id):
        self.participant_id = participant_id
        self.room_id = room_id
        super().__init__(f"Participant {participant_id} is not the host of room {room_id}")


# ============ 出價相關異常（安靜忽略）============

class BiddingLocked(AuctionException):
    """房間已鎖定，不接受出價"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Bidding is locked in room {room_id}")


class TopicNotFound(AuctionException):
    """出價的 Topic 不存在"""
    def __init__(self, topic_id):
        self.topic_id = topic_id
        super().__init__(f"Topic {topic_id} not found")
