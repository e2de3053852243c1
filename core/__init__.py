from core.auto_off import AutoOffTimer, auto_off_seconds
from core.broadcast import ValueChannel
from core.camera import OpenCVCamera
from core.feedback_policy import CentreAlignmentEvaluator, CentreAlignmentFeedbackPolicy
from core.frame_processor import ContinuousFrameProcessor
from core.frame_quality import LaplacianSharpnessEvaluator
from core.item_catalog import DEFAULT_ITEMS, ItemCatalog
from core.lifecycle import EventBus, FeatureLifecycle, FeatureRegistry, StopController, StopReason
from core.operation_bag import Disposable, OperationBag
from core.prediction import PredictionParameters, PredictionService, SearchSession
from core.query_acquisition import ItemQueryAcquirer, QueryAcquirer, TextQueryAcquirer
from core.session_orchestrator import SessionOrchestrator
from core.state_machine import StateMachine
from core.text_cluster import CentralTextClusterDetector, ClusterParameters
from core.text_grid import ReadWriteLock, TextGrid

__all__ = [
    "AutoOffTimer",
    "auto_off_seconds",
    "ValueChannel",
    "OpenCVCamera",
    "CentreAlignmentEvaluator",
    "CentreAlignmentFeedbackPolicy",
    "ContinuousFrameProcessor",
    "LaplacianSharpnessEvaluator",
    "DEFAULT_ITEMS",
    "ItemCatalog",
    "EventBus",
    "FeatureLifecycle",
    "FeatureRegistry",
    "StopController",
    "StopReason",
    "Disposable",
    "OperationBag",
    "PredictionParameters",
    "PredictionService",
    "SearchSession",
    "ItemQueryAcquirer",
    "QueryAcquirer",
    "TextQueryAcquirer",
    "SessionOrchestrator",
    "StateMachine",
    "CentralTextClusterDetector",
    "ClusterParameters",
    "ReadWriteLock",
    "TextGrid",
]
